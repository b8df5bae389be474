from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..domain.errors import NotFoundError, ValidationError
from ..domain.repositories import AdmissionLedger, AdmissionTarget, GametimeRepository
from ..models import Gametime, GametimeSkill, GametimeStatus, GametimeType, User
from ..utils.time import utc_now_naive
from . import admission
from .admission import AdmissionResult


@dataclass(frozen=True)
class GametimeDetail:
    gametime: Gametime
    participants: list[User]
    is_joined: bool
    is_creator: bool


async def create_gametime(
    gametime_repo: GametimeRepository,
    *,
    creator_id: int,
    title: str,
    sport_name: str,
    event_type: GametimeType,
    skill_level: GametimeSkill,
    start_time: datetime,
    end_time: datetime,
    max_players: int,
    description: Optional[str] = None,
    venue_name: Optional[str] = None,
    address: Optional[str] = None,
    city: Optional[str] = None,
    country: Optional[str] = None,
    cost_per_person_cents: int = 0,
    currency: str = "AUD",
    notes: Optional[str] = None,
    now: datetime | None = None,
) -> Gametime:
    now = now or utc_now_naive()
    if end_time <= start_time:
        raise ValidationError("end time must be after start time")
    if start_time < now:
        raise ValidationError("cannot schedule a gametime in the past")
    if max_players < 2:
        raise ValidationError("max_players must be at least 2")

    gametime = await gametime_repo.create(
        Gametime(
            creator_id=creator_id,
            title=title,
            sport_name=sport_name,
            description=description,
            event_type=event_type,
            skill_level=skill_level,
            venue_name=venue_name,
            address=address,
            city=city,
            country=country,
            start_time=start_time,
            end_time=end_time,
            max_players=max_players,
            # The creator holds the first seat for the gametime's whole life.
            current_players=1,
            cost_per_person_cents=cost_per_person_cents,
            currency=currency,
            status=GametimeStatus.UPCOMING,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
    )
    await gametime_repo.add_participant(gametime.id, creator_id)
    return gametime


async def join_gametime(ledger: AdmissionLedger, *, gametime_id: int, user_id: int) -> AdmissionResult:
    return await admission.admit(ledger, resource_id=gametime_id, user_id=user_id)


async def leave_gametime(ledger: AdmissionLedger, *, gametime_id: int, user_id: int) -> AdmissionResult:
    return await admission.withdraw(ledger, resource_id=gametime_id, user_id=user_id)


async def cancel_gametime(ledger: AdmissionLedger, *, gametime_id: int, user_id: int) -> AdmissionTarget:
    return await admission.cancel_resource(ledger, resource_id=gametime_id, user_id=user_id)


async def get_gametime(
    gametime_repo: GametimeRepository,
    *,
    gametime_id: int,
    user_id: int,
) -> GametimeDetail:
    gametime = await gametime_repo.get(gametime_id)
    if gametime is None:
        raise NotFoundError("gametime not found")
    participants = await gametime_repo.list_participants(gametime_id)
    return GametimeDetail(
        gametime=gametime,
        participants=participants,
        is_joined=await gametime_repo.is_joined(gametime_id, user_id),
        is_creator=gametime.creator_id == user_id,
    )


async def list_gametimes(
    gametime_repo: GametimeRepository,
    *,
    status: GametimeStatus = GametimeStatus.UPCOMING,
    sport: str | None = None,
    city: str | None = None,
    event_type: str | None = None,
    skill_level: str | None = None,
    limit: int = 20,
    offset: int = 0,
    now: datetime | None = None,
) -> tuple[list[Gametime], int]:
    # Upcoming listings hide gametimes whose start has already passed.
    starts_after = (now or utc_now_naive()) if status == GametimeStatus.UPCOMING else None
    return await gametime_repo.search(
        status=status,
        starts_after=starts_after,
        sport=sport,
        city=city,
        event_type=event_type,
        skill_level=skill_level,
        limit=limit,
        offset=offset,
    )


async def my_gametimes(
    gametime_repo: GametimeRepository,
    *,
    user_id: int,
) -> tuple[list[Gametime], list[Gametime]]:
    created = await gametime_repo.list_created(user_id)
    joined = [g for g in await gametime_repo.list_joined(user_id) if g.creator_id != user_id]
    return created, joined
