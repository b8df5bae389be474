from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, SmallInteger, String, Text, Time


# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_ID = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


def _enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class SkillLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    PROFESSIONAL = "professional"


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class GametimeStatus(StrEnum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GametimeType(StrEnum):
    CASUAL = "casual"
    COMPETITIVE = "competitive"
    TRAINING = "training"


class GametimeSkill(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ANY = "any"


class ParticipantStatus(StrEnum):
    JOINED = "joined"
    LEFT = "left"
    REMOVED = "removed"


class EventStatus(StrEnum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventType(StrEnum):
    TOURNAMENT = "tournament"
    MEETUP = "meetup"
    LEAGUE = "league"


class RegistrationStatus(StrEnum):
    REGISTERED = "registered"
    CANCELLED = "cancelled"


class SwipeDirection(StrEnum):
    LEFT = "left"
    RIGHT = "right"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    skills: Mapped[list["UserSportsSkill"]] = relationship(back_populates="user")
    availabilities: Mapped[list["UserAvailability"]] = relationship(back_populates="user")


class UserSportsSkill(Base):
    __tablename__ = "user_sports_skills"
    __table_args__ = (UniqueConstraint("user_id", "sport_name", name="uq_user_skill"),)

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    sport_name: Mapped[str] = mapped_column(String(100), nullable=False)
    skill_level: Mapped[SkillLevel] = mapped_column(_enum(SkillLevel), nullable=False)

    user: Mapped["User"] = relationship(back_populates="skills")


class UserAvailability(Base):
    __tablename__ = "user_availabilities"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_user_avail_day"),
        Index("idx_user_avail_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    user: Mapped["User"] = relationship(back_populates="availabilities")


class Venue(Base):
    __tablename__ = "venues"

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    schedules: Mapped[list["VenueSchedule"]] = relationship(back_populates="venue")
    activities: Mapped[list["VenueActivity"]] = relationship(back_populates="venue")


class VenueSchedule(Base):
    __tablename__ = "venue_schedules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_venue_sched_day"),
        UniqueConstraint("venue_id", "day_of_week", name="uq_venue_sched_day"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)

    venue: Mapped["Venue"] = relationship(back_populates="schedules")


class VenueActivity(Base):
    __tablename__ = "venue_activities"
    __table_args__ = (
        CheckConstraint("hourly_rate_cents >= 0", name="chk_venue_act_rate"),
        UniqueConstraint("venue_id", "sport_name", name="uq_venue_act"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    sport_name: Mapped[str] = mapped_column(String(100), nullable=False)
    hourly_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    venue: Mapped["Venue"] = relationship(back_populates="activities")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_bookings_time"),
        CheckConstraint("total_cents >= 0", name="chk_bookings_price"),
        Index("idx_bookings_venue_time", "venue_id", "start_time", "end_time"),
        Index("idx_bookings_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    sport_name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    venue: Mapped["Venue"] = relationship()


class Gametime(Base):
    __tablename__ = "gametimes"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_gametimes_time"),
        CheckConstraint("max_players >= 2", name="chk_gametimes_capacity"),
        CheckConstraint("current_players <= max_players", name="chk_gametimes_count"),
        Index("idx_gametimes_status_start", "status", "start_time"),
        Index("idx_gametimes_creator", "creator_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    creator_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sport_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_type: Mapped[GametimeType] = mapped_column(_enum(GametimeType), nullable=False)
    skill_level: Mapped[GametimeSkill] = mapped_column(_enum(GametimeSkill), nullable=False)
    venue_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    current_players: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cost_per_person_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")
    status: Mapped[GametimeStatus] = mapped_column(
        _enum(GametimeStatus), nullable=False, default=GametimeStatus.UPCOMING
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    participants: Mapped[list["GametimeParticipant"]] = relationship(back_populates="gametime")


class GametimeParticipant(Base):
    __tablename__ = "gametime_participants"
    __table_args__ = (
        UniqueConstraint("gametime_id", "user_id", name="uq_gametime_participant"),
        Index("idx_gametime_participant_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    gametime_id: Mapped[int] = mapped_column(ForeignKey("gametimes.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[ParticipantStatus] = mapped_column(
        _enum(ParticipantStatus), nullable=False, default=ParticipantStatus.JOINED
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    gametime: Mapped["Gametime"] = relationship(back_populates="participants")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_events_time"),
        CheckConstraint("max_participants >= 2", name="chk_events_capacity"),
        Index("idx_events_status_start", "status", "start_time"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    organizer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sport_name: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[EventType] = mapped_column(_enum(EventType), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    venue_id: Mapped[Optional[int]] = mapped_column(ForeignKey("venues.id"), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=32)
    registration_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    status: Mapped[EventStatus] = mapped_column(_enum(EventStatus), nullable=False, default=EventStatus.OPEN)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    registrations: Mapped[list["EventRegistration"]] = relationship(back_populates="event")


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_registration"),
        Index("idx_event_registration_status", "event_id", "status"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[RegistrationStatus] = mapped_column(
        _enum(RegistrationStatus), nullable=False, default=RegistrationStatus.REGISTERED
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    event: Mapped["Event"] = relationship(back_populates="registrations")


class Swipe(Base):
    __tablename__ = "user_swipes"
    __table_args__ = (
        CheckConstraint("swiper_id <> swiped_id", name="chk_swipes_self"),
        UniqueConstraint("swiper_id", "swiped_id", name="uq_swipes_pair"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    swiper_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    swiped_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    direction: Mapped[SwipeDirection] = mapped_column(_enum(SwipeDirection), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Match(Base):
    __tablename__ = "user_matches"
    __table_args__ = (
        CheckConstraint("user1_id < user2_id", name="chk_matches_canonical"),
        UniqueConstraint("user1_id", "user2_id", name="uq_matches_pair"),
        Index("idx_matches_user2", "user2_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    user2_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    user1_likes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    user2_likes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    matched_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    def other(self, user_id: int) -> int:
        return self.user2_id if self.user1_id == user_id else self.user1_id
