from datetime import date, datetime, time
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain.ranking import RankedCandidate
from .domain.slots import Slot
from .models import (
    Booking,
    BookingStatus,
    Event,
    EventStatus,
    EventType,
    Gametime,
    GametimeSkill,
    GametimeStatus,
    GametimeType,
    Match,
    Swipe,
    SwipeDirection,
    User,
    Venue,
    VenueActivity,
    VenueSchedule,
)
from .utils.time import UTC, to_utc_naive, utc_naive_to_zone


def _aware_to_utc_naive(value: datetime) -> datetime:
    # Raises ValueError for naive input; pydantic reports it as a 422.
    return to_utc_naive(value)


class UserSummary(BaseModel):
    user_id: int
    name: str
    city: Optional[str] = None

    @classmethod
    def from_db(cls, user: User) -> "UserSummary":
        return cls(user_id=user.id, name=user.name, city=user.city)


class VenueScheduleRead(BaseModel):
    day_of_week: int
    open_time: time
    close_time: time

    @classmethod
    def from_db(cls, schedule: VenueSchedule) -> "VenueScheduleRead":
        return cls(day_of_week=schedule.day_of_week, open_time=schedule.open_time, close_time=schedule.close_time)


class VenueActivityRead(BaseModel):
    sport_name: str
    hourly_rate_cents: int


class VenueRead(BaseModel):
    venue_id: int
    name: str
    address: Optional[str]
    city: Optional[str]
    currency: str
    timezone: str
    schedules: List[VenueScheduleRead] = []
    activities: List[VenueActivityRead] = []

    @classmethod
    def from_db(
        cls,
        *,
        venue: Venue,
        schedules: List[VenueSchedule],
        activities: List[VenueActivity],
    ) -> "VenueRead":
        return cls(
            venue_id=venue.id,
            name=venue.name,
            address=venue.address,
            city=venue.city,
            currency=venue.currency,
            timezone=venue.timezone,
            schedules=[VenueScheduleRead.from_db(s) for s in schedules],
            activities=[VenueActivityRead(sport_name=a.sport_name, hourly_rate_cents=a.hourly_rate_cents) for a in activities],
        )


class SlotRead(BaseModel):
    start_time: datetime
    end_time: datetime
    available: bool

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_slot(cls, slot: Slot, tz: ZoneInfo) -> "SlotRead":
        return cls(
            start_time=utc_naive_to_zone(slot.start, tz),
            end_time=utc_naive_to_zone(slot.end, tz),
            available=slot.available,
        )


class AvailabilityRead(BaseModel):
    venue_id: int
    day: date
    sport_name: str
    hourly_rate_cents: int
    currency: str
    timezone: str
    slots: List[SlotRead]
    message: Optional[str] = None


class BookingCreate(BaseModel):
    venue_id: int = Field(ge=1)
    sport_name: str = Field(min_length=1, max_length=100)
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return _aware_to_utc_naive(value)


class BookingRead(BaseModel):
    booking_id: int
    venue_id: int
    user_id: int
    sport_name: str
    start_time: datetime
    end_time: datetime
    total_cents: int
    currency: str
    status: BookingStatus

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, booking: Booking, tz: ZoneInfo | None = None) -> "BookingRead":
        zone = tz or UTC
        return cls(
            booking_id=booking.id,
            venue_id=booking.venue_id,
            user_id=booking.user_id,
            sport_name=booking.sport_name,
            start_time=utc_naive_to_zone(booking.start_time, zone),
            end_time=utc_naive_to_zone(booking.end_time, zone),
            total_cents=booking.total_cents,
            currency=booking.currency,
            status=booking.status,
        )


class GametimeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    sport_name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    event_type: GametimeType = GametimeType.CASUAL
    skill_level: GametimeSkill = GametimeSkill.ANY
    venue_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_players: int = Field(ge=2, le=100)
    cost_per_person_cents: int = Field(default=0, ge=0)
    currency: str = Field(default="AUD", min_length=3, max_length=3)
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return _aware_to_utc_naive(value)


class GametimeRead(BaseModel):
    gametime_id: int
    creator_id: int
    title: str
    sport_name: str
    event_type: GametimeType
    skill_level: GametimeSkill
    venue_name: Optional[str]
    city: Optional[str]
    start_time: datetime
    end_time: datetime
    max_players: int
    current_players: int
    cost_per_person_cents: int
    currency: str
    status: GametimeStatus

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, gametime: Gametime, **extra: Any) -> "GametimeRead":
        return cls(
            gametime_id=gametime.id,
            creator_id=gametime.creator_id,
            title=gametime.title,
            sport_name=gametime.sport_name,
            event_type=gametime.event_type,
            skill_level=gametime.skill_level,
            venue_name=gametime.venue_name,
            city=gametime.city,
            start_time=utc_naive_to_zone(gametime.start_time),
            end_time=utc_naive_to_zone(gametime.end_time),
            max_players=gametime.max_players,
            current_players=gametime.current_players,
            cost_per_person_cents=gametime.cost_per_person_cents,
            currency=gametime.currency,
            status=gametime.status,
            **extra,
        )


class GametimeDetailRead(GametimeRead):
    description: Optional[str] = None
    notes: Optional[str] = None
    participants: List[UserSummary] = []
    is_joined: bool = False
    is_creator: bool = False


class GametimeListRead(BaseModel):
    items: List[GametimeRead]
    total: int
    limit: int
    offset: int


class MyGametimesRead(BaseModel):
    created: List[GametimeRead]
    joined: List[GametimeRead]


class AdmissionRead(BaseModel):
    resource_id: int
    user_id: int
    occupancy: int
    rejoined: bool = False


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    sport_name: str = Field(min_length=1, max_length=100)
    event_type: EventType = EventType.MEETUP
    description: Optional[str] = None
    venue_id: Optional[int] = None
    city: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_participants: Optional[int] = Field(default=None, ge=2, le=256)
    registration_deadline: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return _aware_to_utc_naive(value)

    @field_validator("registration_deadline")
    @classmethod
    def _deadline_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(value) if value is not None else None


class EventRead(BaseModel):
    event_id: int
    organizer_id: int
    title: str
    sport_name: str
    event_type: EventType
    venue_id: Optional[int]
    city: Optional[str]
    start_time: datetime
    end_time: datetime
    max_participants: int
    registration_deadline: Optional[datetime]
    status: EventStatus
    registered_count: Optional[int] = None

    @field_serializer("start_time", "end_time", "registration_deadline")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, event: Event, registered_count: Optional[int] = None, **extra: Any) -> "EventRead":
        deadline = event.registration_deadline
        return cls(
            event_id=event.id,
            organizer_id=event.organizer_id,
            title=event.title,
            sport_name=event.sport_name,
            event_type=event.event_type,
            venue_id=event.venue_id,
            city=event.city,
            start_time=utc_naive_to_zone(event.start_time),
            end_time=utc_naive_to_zone(event.end_time),
            max_participants=event.max_participants,
            registration_deadline=utc_naive_to_zone(deadline) if deadline is not None else None,
            status=event.status,
            registered_count=registered_count,
            **extra,
        )


class EventDetailRead(EventRead):
    description: Optional[str] = None
    is_registered: bool = False


class EventListRead(BaseModel):
    items: List[EventRead]
    total: int
    limit: int
    offset: int


class SwipeCreate(BaseModel):
    direction: SwipeDirection


class SwipeRead(BaseModel):
    swipe_id: int
    target_user_id: int
    direction: SwipeDirection
    is_match: bool
    match_id: Optional[int] = None
    reactivated: bool = False

    @classmethod
    def from_outcome(cls, *, swipe: Swipe, match: Optional[Match], is_match: bool, reactivated: bool) -> "SwipeRead":
        return cls(
            swipe_id=swipe.id,
            target_user_id=swipe.swiped_id,
            direction=swipe.direction,
            is_match=is_match,
            match_id=match.id if match is not None and is_match else None,
            reactivated=reactivated,
        )


class MatchRead(BaseModel):
    match_id: int
    user: UserSummary
    matched_at: datetime

    @field_serializer("matched_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, match: Match, other: User) -> "MatchRead":
        return cls(match_id=match.id, user=UserSummary.from_db(other), matched_at=utc_naive_to_zone(match.matched_at))


class CandidateRead(BaseModel):
    user_id: int
    score: int
    reasons: List[str]
    distance_km: Optional[float] = None

    @classmethod
    def from_ranked(cls, ranked: RankedCandidate) -> "CandidateRead":
        distance = round(ranked.distance_km, 1) if ranked.distance_km is not None else None
        return cls(
            user_id=ranked.profile.user_id,
            score=ranked.score,
            reasons=list(ranked.reasons),
            distance_km=distance,
        )


class PlaypalProfileRead(UserSummary):
    is_matched: bool = False
