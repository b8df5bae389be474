"""Domain error kinds surfaced to callers.

Every error carries a stable ``kind`` so the HTTP layer can map it without
inspecting messages.
"""

from __future__ import annotations

from typing import ClassVar


class DomainError(Exception):
    kind: ClassVar[str] = "domain"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or out-of-range input (time ordering, unknown activity...)."""

    kind = "validation"


class NotFoundError(DomainError):
    kind = "not_found"


class ConflictError(DomainError):
    """The requested unit is taken: overlap, full capacity, duplicates."""

    kind = "conflict"


class SlotUnavailableError(ConflictError):
    pass


class CapacityError(ConflictError):
    pass


class DuplicateAdmissionError(ConflictError):
    pass


class DuplicateSwipeError(ConflictError):
    pass


class ForbiddenError(DomainError):
    kind = "forbidden"


class StateError(DomainError):
    """Operation is invalid for the record's current status."""

    kind = "state"
