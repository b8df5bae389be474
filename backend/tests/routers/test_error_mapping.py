import pytest
from courtside.domain.errors import (
    CapacityError,
    DomainError,
    DuplicateAdmissionError,
    DuplicateSwipeError,
    ForbiddenError,
    NotFoundError,
    SlotUnavailableError,
    StateError,
    ValidationError,
)
from courtside.routers.errors import db_error_to_http, domain_error_to_http, is_retryable_conflict
from sqlalchemy.exc import IntegrityError, OperationalError


@pytest.mark.parametrize(
    ("error", "status_code", "kind"),
    [
        (ValidationError("bad"), 400, "validation"),
        (NotFoundError("missing"), 404, "not_found"),
        (SlotUnavailableError("taken"), 409, "conflict"),
        (CapacityError("full"), 409, "conflict"),
        (DuplicateAdmissionError("again"), 409, "conflict"),
        (DuplicateSwipeError("again"), 409, "conflict"),
        (ForbiddenError("nope"), 403, "forbidden"),
        (StateError("wrong state"), 400, "state"),
    ],
)
def test_domain_errors_map_to_http(error: DomainError, status_code: int, kind: str) -> None:
    exc = domain_error_to_http(error)
    assert exc.status_code == status_code
    assert exc.detail == {"kind": kind, "message": error.message}


class PgError(Exception):
    def __init__(self, pgcode: str) -> None:
        super().__init__(pgcode)
        self.pgcode = pgcode


@pytest.mark.parametrize(
    "orig",
    [Exception(1213, "Deadlock found"), Exception(1205, "Lock wait timeout exceeded"), PgError("40P01"), PgError("40001")],
)
def test_lock_conflicts_are_retryable(orig: Exception) -> None:
    err = OperationalError("UPDATE", {}, orig)
    assert is_retryable_conflict(err)
    assert db_error_to_http(err).status_code == 409


def test_integrity_race_is_retryable() -> None:
    err = IntegrityError("INSERT", {}, Exception(1062, "Duplicate entry"))
    assert db_error_to_http(err).status_code == 409


def test_other_database_errors_are_500() -> None:
    err = OperationalError("SELECT", {}, Exception(2013, "Lost connection"))
    assert not is_retryable_conflict(err)
    assert db_error_to_http(err).status_code == 500
