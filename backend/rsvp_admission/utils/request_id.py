from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_INCOMING_LENGTH = 128

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def request_id_from(header_value: str | None) -> str:
    """Reuse a caller-supplied id when it is sane, otherwise mint one."""
    if header_value and len(header_value) <= _MAX_INCOMING_LENGTH and header_value.isprintable():
        return header_value
    return generate_request_id()


def set_request_id(request_id: str | None) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    """Request id of the current HTTP request, attached to audit lines."""
    return _request_id_ctx.get()
