from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..models import (
    Booking,
    BookingStatus,
    Event,
    EventStatus,
    Gametime,
    GametimeStatus,
    Match,
    Swipe,
    SwipeDirection,
    User,
    Venue,
    VenueActivity,
    VenueSchedule,
)
from .ranking import PlayerProfile


class VenueRepository(Protocol):
    async def get(self, venue_id: int) -> Venue | None: ...

    async def get_for_update(self, venue_id: int) -> Venue | None: ...

    async def find_activity(self, venue_id: int, activity: str) -> VenueActivity | None: ...

    async def get_schedule(self, venue_id: int, day_of_week: int) -> VenueSchedule | None: ...

    async def list_schedules(self, venue_id: int) -> list[VenueSchedule]: ...

    async def list_activities(self, venue_id: int) -> list[VenueActivity]: ...


class BookingRepository(Protocol):
    async def find_overlapping(self, venue_id: int, start: datetime, end: datetime) -> Booking | None: ...

    async def list_overlapping(self, venue_id: int, start: datetime, end: datetime) -> list[Booking]: ...

    async def create(
        self,
        *,
        venue_id: int,
        user_id: int,
        sport_name: str,
        start_time: datetime,
        end_time: datetime,
        total_cents: int,
        currency: str,
        status: BookingStatus,
    ) -> Booking: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def get_for_update(self, booking_id: int) -> Booking | None: ...

    async def list_by_user(
        self,
        user_id: int,
        *,
        status: BookingStatus | None = None,
        starts_after: datetime | None = None,
        limit: int = 50,
    ) -> list[Booking]: ...

    async def save(self, booking: Booking) -> Booking: ...


@dataclass(frozen=True)
class AdmissionTarget:
    """Locked view of a capacity-bound resource, independent of its table."""

    resource_id: int
    owner_id: int
    status: str
    admitting: bool
    capacity: int
    deadline: Optional[datetime] = None


class AdmissionLedger(Protocol):
    """How one kind of resource counts and claims its seats.

    All methods run inside the caller's transaction; ``lock`` must take a row
    lock on the resource so the remaining calls see a stable occupancy.
    """

    noun: str
    # The owner holds a seat for the resource's whole life and can only cancel.
    owner_is_participant: bool

    async def lock(self, resource_id: int) -> AdmissionTarget | None: ...

    async def membership(self, resource_id: int, user_id: int) -> bool | None:
        """True: admitted, False: a terminal record exists, None: no record."""
        ...

    async def occupancy(self, target: AdmissionTarget) -> int: ...

    async def admit(self, target: AdmissionTarget, user_id: int, *, existing: bool) -> int:
        """Insert or re-activate the record and claim a seat; returns new occupancy."""
        ...

    async def withdraw(self, target: AdmissionTarget, user_id: int) -> int: ...

    async def cancel(self, target: AdmissionTarget) -> None: ...


class GametimeRepository(Protocol):
    async def create(self, gametime: Gametime) -> Gametime: ...

    async def add_participant(self, gametime_id: int, user_id: int) -> None: ...

    async def get(self, gametime_id: int) -> Gametime | None: ...

    async def search(
        self,
        *,
        status: GametimeStatus,
        starts_after: datetime | None,
        sport: str | None = None,
        city: str | None = None,
        event_type: str | None = None,
        skill_level: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Gametime], int]: ...

    async def list_participants(self, gametime_id: int) -> list[User]: ...

    async def is_joined(self, gametime_id: int, user_id: int) -> bool: ...

    async def list_created(self, user_id: int) -> list[Gametime]: ...

    async def list_joined(self, user_id: int) -> list[Gametime]: ...


class EventRepository(Protocol):
    async def create(self, event: Event) -> Event: ...

    async def get(self, event_id: int) -> Event | None: ...

    async def search(
        self,
        *,
        status: EventStatus,
        starts_after: datetime,
        sport: str | None = None,
        event_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[Event, int]], int]: ...

    async def registered_count(self, event_id: int) -> int: ...

    async def is_registered(self, event_id: int, user_id: int) -> bool: ...

    async def list_registered_for_user(self, user_id: int) -> list[Event]: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def lock_pair(self, first: int, second: int) -> int:
        """Row-lock both users in ascending id order; returns rows locked."""
        ...

    async def profile(self, user_id: int) -> PlayerProfile | None: ...

    async def candidate_profiles(
        self,
        *,
        exclude: Sequence[int],
        sport: str | None,
        limit: int,
    ) -> list[PlayerProfile]: ...


class SwipeRepository(Protocol):
    async def get(self, swiper_id: int, swiped_id: int, *, for_update: bool = False) -> Swipe | None: ...

    async def create(self, swiper_id: int, swiped_id: int, direction: SwipeDirection) -> Swipe: ...

    async def swiped_ids(self, swiper_id: int) -> list[int]: ...


class MatchRepository(Protocol):
    async def get_for_update(self, user1_id: int, user2_id: int) -> Match | None: ...

    async def get_or_create(self, user1_id: int, user2_id: int) -> tuple[Match, bool]: ...

    async def list_active(self, user_id: int) -> list[tuple[Match, User]]: ...

    async def matched_ids(self, user_id: int) -> list[int]: ...

    async def is_matched(self, user_a: int, user_b: int) -> bool: ...

    async def save(self, match: Match) -> Match: ...


class ProgressionHook(Protocol):
    async def award(self, *, user_id: int, source: str, reference_id: int | None) -> None: ...
