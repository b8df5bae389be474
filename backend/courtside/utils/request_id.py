from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

# Bound per request by the HTTP middleware; read by audit records and
# outbound progression calls so one id follows a request end to end.
_current: ContextVar[str | None] = ContextVar("courtside_request_id", default=None)

MAX_INCOMING_LENGTH = 128


def generate_request_id() -> str:
    return uuid.uuid4().hex


def accept_request_id(incoming: str | None) -> str:
    """Reuse a caller-supplied id when it is usable, otherwise mint one."""
    if incoming:
        candidate = incoming.strip()
        if candidate and len(candidate) <= MAX_INCOMING_LENGTH and candidate.isprintable():
            return candidate
    return generate_request_id()


def set_request_id(request_id: str | None) -> None:
    _current.set(request_id)


def get_request_id() -> Optional[str]:
    return _current.get()
