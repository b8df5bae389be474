"""Counter-based admission shared by gametime joins and event registrations.

Call sites differ only in their ``AdmissionLedger``: gametimes keep a
denormalized ``current_players`` counter, events count live registrations.
Every function expects to run inside one transaction opened by the caller.
"""

from dataclasses import dataclass
from datetime import datetime

from ..domain.errors import ForbiddenError, NotFoundError, StateError
from ..domain.repositories import AdmissionLedger, AdmissionTarget
from ..domain.services import AdmissionSnapshot, validate_admission
from ..utils.time import utc_now_naive


@dataclass(frozen=True)
class AdmissionResult:
    resource_id: int
    user_id: int
    occupancy: int
    rejoined: bool = False


async def _lock(ledger: AdmissionLedger, resource_id: int) -> AdmissionTarget:
    target = await ledger.lock(resource_id)
    if target is None:
        raise NotFoundError(f"{ledger.noun} not found")
    return target


async def admit(
    ledger: AdmissionLedger,
    *,
    resource_id: int,
    user_id: int,
    now: datetime | None = None,
) -> AdmissionResult:
    target = await _lock(ledger, resource_id)
    membership = await ledger.membership(resource_id, user_id)
    occupancy = await ledger.occupancy(target)

    validate_admission(
        AdmissionSnapshot(
            admitting=target.admitting,
            capacity=target.capacity,
            occupancy=occupancy,
            already_admitted=membership is True,
            deadline=target.deadline,
        ),
        now=now or utc_now_naive(),
    )

    rejoined = membership is False
    occupancy = await ledger.admit(target, user_id, existing=rejoined)
    return AdmissionResult(resource_id=resource_id, user_id=user_id, occupancy=occupancy, rejoined=rejoined)


async def withdraw(
    ledger: AdmissionLedger,
    *,
    resource_id: int,
    user_id: int,
) -> AdmissionResult:
    target = await _lock(ledger, resource_id)
    if ledger.owner_is_participant and target.owner_id == user_id:
        raise StateError("the organizer cannot leave; cancel it instead")
    if await ledger.membership(resource_id, user_id) is not True:
        raise StateError("not currently joined")
    occupancy = await ledger.withdraw(target, user_id)
    return AdmissionResult(resource_id=resource_id, user_id=user_id, occupancy=occupancy)


async def cancel_resource(
    ledger: AdmissionLedger,
    *,
    resource_id: int,
    user_id: int,
) -> AdmissionTarget:
    target = await _lock(ledger, resource_id)
    if target.owner_id != user_id:
        raise ForbiddenError("only the organizer can cancel")
    if not target.admitting:
        raise StateError(f"cannot cancel while {target.status}")
    await ledger.cancel(target)
    return target
