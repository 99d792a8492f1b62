from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

settings = get_settings()

# Capacity counters are read under SELECT ... FOR UPDATE; READ COMMITTED keeps
# those locks to the touched rows instead of gap locks over the index.
engine = create_async_engine(
    settings.database_url,
    echo=settings.echo_sql,
    pool_pre_ping=True,
    pool_recycle=3600,
    isolation_level="READ COMMITTED",
)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
