"""
Translation of domain and store failures into HTTP responses.
Routers stay thin: they catch ``DomainError`` / ``DBAPIError`` and hand them here.
"""
from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError, IntegrityError

from ..domain.errors import DomainError

logger = logging.getLogger(__name__)

# kind -> HTTP status. Unknown kinds fall back to 400.
STATUS_BY_KIND: dict[str, int] = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "state": status.HTTP_400_BAD_REQUEST,
}

MSG_RETRY = "the request conflicted with a concurrent update, please retry"
MSG_AUDIT_FAILED = "failed to write audit log"

# MySQL: 1213 deadlock, 1205 lock wait timeout.
_MYSQL_RETRYABLE = {1213, 1205}
# PostgreSQL: serialization failure, deadlock detected.
_PG_RETRYABLE = {"40001", "40P01"}


def _detail(kind: str, message: str) -> dict[str, str]:
    return {"kind": kind, "message": message}


def domain_error_to_http(exc: DomainError) -> HTTPException:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=_detail(exc.kind, exc.message))


def is_retryable_conflict(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        return True
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _PG_RETRYABLE:
        return True
    args = getattr(orig, "args", ())
    return bool(args) and args[0] in _MYSQL_RETRYABLE


def db_error_to_http(exc: DBAPIError) -> HTTPException:
    if is_retryable_conflict(exc):
        logger.info("write conflict surfaced to client: %s", exc.orig)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_detail("conflict", MSG_RETRY))
    logger.error("database error: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="database error")


def audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=MSG_AUDIT_FAILED)
