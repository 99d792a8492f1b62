import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .deps import get_token_service
from .routers import admission, offers, slots
from .utils.request_id import REQUEST_ID_HEADER, request_id_from, set_request_id

logging.basicConfig(level=get_settings().log_level)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    # raises ConfigurationError when no signing secret is configured
    get_token_service()
    yield


app = FastAPI(title="RSVP Admission API", lifespan=lifespan)


async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    request_id = request_id_from(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(slots.router)
app.include_router(admission.router)
app.include_router(offers.router)
