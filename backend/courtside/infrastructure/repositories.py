from __future__ import annotations

from datetime import datetime
from typing import Any, List, Sequence, Tuple, cast

from sqlalchemy import Select, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.errors import CapacityError, DuplicateAdmissionError, DuplicateSwipeError
from ..domain.ranking import PlayerProfile, WeeklyWindow
from ..domain.repositories import (
    AdmissionLedger,
    AdmissionTarget,
    BookingRepository,
    EventRepository,
    GametimeRepository,
    MatchRepository,
    SwipeRepository,
    UserRepository,
    VenueRepository,
)
from ..domain.services import canonical_pair
from ..models import (
    Booking,
    BookingStatus,
    Event,
    EventRegistration,
    EventStatus,
    Gametime,
    GametimeParticipant,
    GametimeStatus,
    Match,
    ParticipantStatus,
    RegistrationStatus,
    Swipe,
    SwipeDirection,
    User,
    UserSportsSkill,
    Venue,
    VenueActivity,
    VenueSchedule,
)
from ..utils.time import utc_now_naive


class SqlAlchemyVenueRepository(VenueRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, venue_id: int) -> Venue | None:
        return await self.session.scalar(select(Venue).where(Venue.id == venue_id))

    async def get_for_update(self, venue_id: int) -> Venue | None:
        result = await self.session.scalar(select(Venue).where(Venue.id == venue_id).with_for_update())
        return result if isinstance(result, Venue) else None

    async def find_activity(self, venue_id: int, activity: str) -> VenueActivity | None:
        stmt = select(VenueActivity).where(
            VenueActivity.venue_id == venue_id,
            func.lower(VenueActivity.sport_name) == activity.strip().lower(),
        )
        return await self.session.scalar(stmt)

    async def get_schedule(self, venue_id: int, day_of_week: int) -> VenueSchedule | None:
        stmt = select(VenueSchedule).where(
            VenueSchedule.venue_id == venue_id,
            VenueSchedule.day_of_week == day_of_week,
        )
        return await self.session.scalar(stmt)

    async def list_schedules(self, venue_id: int) -> List[VenueSchedule]:
        stmt = select(VenueSchedule).where(VenueSchedule.venue_id == venue_id).order_by(VenueSchedule.day_of_week)
        return list((await self.session.scalars(stmt)).all())

    async def list_activities(self, venue_id: int) -> List[VenueActivity]:
        stmt = select(VenueActivity).where(VenueActivity.venue_id == venue_id).order_by(VenueActivity.sport_name)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _overlapping(venue_id: int, start: datetime, end: datetime) -> Select[Tuple[Booking]]:
        # Half-open [start, end): a booking ending exactly at `start` is free.
        return select(Booking).where(
            Booking.venue_id == venue_id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.start_time < end,
            Booking.end_time > start,
        )

    async def find_overlapping(self, venue_id: int, start: datetime, end: datetime) -> Booking | None:
        return await self.session.scalar(self._overlapping(venue_id, start, end).limit(1))

    async def list_overlapping(self, venue_id: int, start: datetime, end: datetime) -> List[Booking]:
        stmt = self._overlapping(venue_id, start, end).order_by(Booking.start_time)
        return list((await self.session.scalars(stmt)).all())

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
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            venue_id=venue_id,
            user_id=user_id,
            sport_name=sport_name,
            start_time=start_time,
            end_time=end_time,
            total_cents=total_cents,
            currency=currency,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get(self, booking_id: int) -> Booking | None:
        return await self.session.scalar(select(Booking).where(Booking.id == booking_id))

    async def get_for_update(self, booking_id: int) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def list_by_user(
        self,
        user_id: int,
        *,
        status: BookingStatus | None = None,
        starts_after: datetime | None = None,
        limit: int = 50,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if starts_after is not None:
            stmt = stmt.where(Booking.start_time >= starts_after)
        stmt = stmt.order_by(Booking.start_time.desc()).limit(limit)
        return list((await self.session.scalars(stmt)).all())

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking


class SqlAlchemyGametimeLedger(AdmissionLedger):
    """Seats counted by the denormalized ``gametimes.current_players`` column."""

    noun = "gametime"
    owner_is_participant = True

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock(self, resource_id: int) -> AdmissionTarget | None:
        gametime = await self.session.scalar(select(Gametime).where(Gametime.id == resource_id).with_for_update())
        if not isinstance(gametime, Gametime):
            return None
        return AdmissionTarget(
            resource_id=gametime.id,
            owner_id=gametime.creator_id,
            status=str(gametime.status),
            admitting=gametime.status == GametimeStatus.UPCOMING,
            capacity=gametime.max_players,
        )

    async def membership(self, resource_id: int, user_id: int) -> bool | None:
        status = await self.session.scalar(
            select(GametimeParticipant.status).where(
                GametimeParticipant.gametime_id == resource_id,
                GametimeParticipant.user_id == user_id,
            )
        )
        if status is None:
            return None
        return status == ParticipantStatus.JOINED

    async def occupancy(self, target: AdmissionTarget) -> int:
        count = await self.session.scalar(select(Gametime.current_players).where(Gametime.id == target.resource_id))
        return int(count or 0)

    async def admit(self, target: AdmissionTarget, user_id: int, *, existing: bool) -> int:
        now = utc_now_naive()
        # Check and increment in one statement; zero rows means the last seat
        # went to someone else.
        claimed = await self.session.execute(
            update(Gametime)
            .where(Gametime.id == target.resource_id, Gametime.current_players < Gametime.max_players)
            .values(current_players=Gametime.current_players + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if cast(Any, claimed).rowcount != 1:
            raise CapacityError("capacity exceeded")

        if existing:
            await self.session.execute(
                update(GametimeParticipant)
                .where(
                    GametimeParticipant.gametime_id == target.resource_id,
                    GametimeParticipant.user_id == user_id,
                )
                .values(status=ParticipantStatus.JOINED, joined_at=now)
                .execution_options(synchronize_session=False)
            )
        else:
            try:
                async with self.session.begin_nested():
                    self.session.add(
                        GametimeParticipant(
                            gametime_id=target.resource_id,
                            user_id=user_id,
                            status=ParticipantStatus.JOINED,
                            joined_at=now,
                        )
                    )
            except IntegrityError as exc:
                raise DuplicateAdmissionError("already joined") from exc
        return await self.occupancy(target)

    async def withdraw(self, target: AdmissionTarget, user_id: int) -> int:
        await self.session.execute(
            update(GametimeParticipant)
            .where(
                GametimeParticipant.gametime_id == target.resource_id,
                GametimeParticipant.user_id == user_id,
            )
            .values(status=ParticipantStatus.LEFT)
            .execution_options(synchronize_session=False)
        )
        # The creator's seat is permanent, so the counter never drops below 1.
        await self.session.execute(
            update(Gametime)
            .where(Gametime.id == target.resource_id)
            .values(
                current_players=case((Gametime.current_players > 1, Gametime.current_players - 1), else_=1),
                updated_at=utc_now_naive(),
            )
            .execution_options(synchronize_session=False)
        )
        return await self.occupancy(target)

    async def cancel(self, target: AdmissionTarget) -> None:
        await self.session.execute(
            update(Gametime)
            .where(Gametime.id == target.resource_id)
            .values(status=GametimeStatus.CANCELLED, updated_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )


class SqlAlchemyEventLedger(AdmissionLedger):
    """Seats counted live from ``event_registrations`` rows."""

    noun = "event"
    owner_is_participant = False

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock(self, resource_id: int) -> AdmissionTarget | None:
        event = await self.session.scalar(select(Event).where(Event.id == resource_id).with_for_update())
        if not isinstance(event, Event):
            return None
        return AdmissionTarget(
            resource_id=event.id,
            owner_id=event.organizer_id,
            status=str(event.status),
            admitting=event.status == EventStatus.OPEN,
            capacity=event.max_participants,
            deadline=event.registration_deadline,
        )

    async def membership(self, resource_id: int, user_id: int) -> bool | None:
        status = await self.session.scalar(
            select(EventRegistration.status).where(
                EventRegistration.event_id == resource_id,
                EventRegistration.user_id == user_id,
            )
        )
        if status is None:
            return None
        return status == RegistrationStatus.REGISTERED

    async def occupancy(self, target: AdmissionTarget) -> int:
        count = await self.session.scalar(
            select(func.count(EventRegistration.id)).where(
                EventRegistration.event_id == target.resource_id,
                EventRegistration.status == RegistrationStatus.REGISTERED,
            )
        )
        return int(count or 0)

    async def admit(self, target: AdmissionTarget, user_id: int, *, existing: bool) -> int:
        now = utc_now_naive()
        if existing:
            await self.session.execute(
                update(EventRegistration)
                .where(EventRegistration.event_id == target.resource_id, EventRegistration.user_id == user_id)
                .values(status=RegistrationStatus.REGISTERED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        else:
            try:
                async with self.session.begin_nested():
                    self.session.add(
                        EventRegistration(
                            event_id=target.resource_id,
                            user_id=user_id,
                            status=RegistrationStatus.REGISTERED,
                            created_at=now,
                            updated_at=now,
                        )
                    )
            except IntegrityError as exc:
                raise DuplicateAdmissionError("already registered") from exc
        return await self.occupancy(target)

    async def withdraw(self, target: AdmissionTarget, user_id: int) -> int:
        await self.session.execute(
            update(EventRegistration)
            .where(EventRegistration.event_id == target.resource_id, EventRegistration.user_id == user_id)
            .values(status=RegistrationStatus.CANCELLED, updated_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        return await self.occupancy(target)

    async def cancel(self, target: AdmissionTarget) -> None:
        await self.session.execute(
            update(Event)
            .where(Event.id == target.resource_id)
            .values(status=EventStatus.CANCELLED, updated_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )


class SqlAlchemyGametimeRepository(GametimeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, gametime: Gametime) -> Gametime:
        self.session.add(gametime)
        await self.session.flush()
        return gametime

    async def add_participant(self, gametime_id: int, user_id: int) -> None:
        self.session.add(
            GametimeParticipant(
                gametime_id=gametime_id,
                user_id=user_id,
                status=ParticipantStatus.JOINED,
                joined_at=utc_now_naive(),
            )
        )
        await self.session.flush()

    async def get(self, gametime_id: int) -> Gametime | None:
        return await self.session.scalar(select(Gametime).where(Gametime.id == gametime_id))

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
    ) -> Tuple[List[Gametime], int]:
        stmt = select(Gametime).where(Gametime.status == status)
        if starts_after is not None:
            stmt = stmt.where(Gametime.start_time > starts_after)
        if sport:
            stmt = stmt.where(func.lower(Gametime.sport_name) == sport.strip().lower())
        if city:
            stmt = stmt.where(func.lower(Gametime.city).contains(city.strip().lower()))
        if event_type:
            stmt = stmt.where(Gametime.event_type == event_type)
        if skill_level:
            stmt = stmt.where(Gametime.skill_level == skill_level)

        total = await self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        rows = await self.session.scalars(stmt.order_by(Gametime.start_time).limit(limit).offset(offset))
        return list(rows.all()), int(total or 0)

    async def list_participants(self, gametime_id: int) -> List[User]:
        stmt = (
            select(User)
            .join(GametimeParticipant, GametimeParticipant.user_id == User.id)
            .where(
                GametimeParticipant.gametime_id == gametime_id,
                GametimeParticipant.status == ParticipantStatus.JOINED,
            )
            .order_by(GametimeParticipant.joined_at)
        )
        return list((await self.session.scalars(stmt)).all())

    async def is_joined(self, gametime_id: int, user_id: int) -> bool:
        stmt = select(GametimeParticipant.id).where(
            GametimeParticipant.gametime_id == gametime_id,
            GametimeParticipant.user_id == user_id,
            GametimeParticipant.status == ParticipantStatus.JOINED,
        )
        return await self.session.scalar(stmt) is not None

    async def list_created(self, user_id: int) -> List[Gametime]:
        stmt = select(Gametime).where(Gametime.creator_id == user_id).order_by(Gametime.start_time)
        return list((await self.session.scalars(stmt)).all())

    async def list_joined(self, user_id: int) -> List[Gametime]:
        stmt = (
            select(Gametime)
            .join(GametimeParticipant, GametimeParticipant.gametime_id == Gametime.id)
            .where(
                GametimeParticipant.user_id == user_id,
                GametimeParticipant.status == ParticipantStatus.JOINED,
            )
            .order_by(Gametime.start_time)
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyEventRepository(EventRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, event: Event) -> Event:
        self.session.add(event)
        await self.session.flush()
        return event

    async def get(self, event_id: int) -> Event | None:
        return await self.session.scalar(select(Event).where(Event.id == event_id))

    async def search(
        self,
        *,
        status: EventStatus,
        starts_after: datetime,
        sport: str | None = None,
        event_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Tuple[Event, int]], int]:
        registered = (
            select(func.count(EventRegistration.id))
            .where(
                EventRegistration.event_id == Event.id,
                EventRegistration.status == RegistrationStatus.REGISTERED,
            )
            .correlate(Event)
            .scalar_subquery()
        )
        base = select(Event).where(Event.status == status, Event.start_time >= starts_after)
        if sport:
            base = base.where(func.lower(Event.sport_name) == sport.strip().lower())
        if event_type:
            base = base.where(Event.event_type == event_type)

        total = await self.session.scalar(select(func.count()).select_from(base.subquery()))
        stmt = base.add_columns(registered.label("registered_count")).order_by(Event.start_time).limit(limit).offset(offset)
        rows = await self.session.execute(stmt)
        return [(event, int(count)) for event, count in rows.all()], int(total or 0)

    async def registered_count(self, event_id: int) -> int:
        count = await self.session.scalar(
            select(func.count(EventRegistration.id)).where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.REGISTERED,
            )
        )
        return int(count or 0)

    async def is_registered(self, event_id: int, user_id: int) -> bool:
        stmt = select(EventRegistration.id).where(
            EventRegistration.event_id == event_id,
            EventRegistration.user_id == user_id,
            EventRegistration.status == RegistrationStatus.REGISTERED,
        )
        return await self.session.scalar(stmt) is not None

    async def list_registered_for_user(self, user_id: int) -> List[Event]:
        stmt = (
            select(Event)
            .join(EventRegistration, EventRegistration.event_id == Event.id)
            .where(
                EventRegistration.user_id == user_id,
                EventRegistration.status == RegistrationStatus.REGISTERED,
            )
            .order_by(Event.start_time)
        )
        return list((await self.session.scalars(stmt)).all())


def _to_profile(user: User) -> PlayerProfile:
    return PlayerProfile(
        user_id=user.id,
        latitude=float(user.latitude) if user.latitude is not None else None,
        longitude=float(user.longitude) if user.longitude is not None else None,
        skills={s.sport_name.lower(): s.skill_level for s in user.skills},
        availability=tuple(
            WeeklyWindow(day_of_week=a.day_of_week, start=a.start_time, end=a.end_time) for a in user.availabilities
        ),
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> User | None:
        return await self.session.scalar(select(User).where(User.id == user_id))

    async def lock_pair(self, first: int, second: int) -> int:
        stmt = select(User.id).where(User.id.in_(sorted({first, second}))).order_by(User.id).with_for_update()
        return len((await self.session.scalars(stmt)).all())

    async def profile(self, user_id: int) -> PlayerProfile | None:
        stmt = (
            select(User)
            .options(selectinload(User.skills), selectinload(User.availabilities))
            .where(User.id == user_id)
        )
        user = await self.session.scalar(stmt)
        return _to_profile(user) if user is not None else None

    async def candidate_profiles(
        self,
        *,
        exclude: Sequence[int],
        sport: str | None,
        limit: int,
    ) -> List[PlayerProfile]:
        stmt = select(User).options(selectinload(User.skills), selectinload(User.availabilities))
        if exclude:
            stmt = stmt.where(User.id.not_in(list(exclude)))
        if sport:
            stmt = stmt.where(User.skills.any(func.lower(UserSportsSkill.sport_name) == sport.strip().lower()))
        rows = await self.session.scalars(stmt.order_by(User.id).limit(limit))
        return [_to_profile(user) for user in rows.all()]


class SqlAlchemySwipeRepository(SwipeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, swiper_id: int, swiped_id: int, *, for_update: bool = False) -> Swipe | None:
        stmt = select(Swipe).where(Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def create(self, swiper_id: int, swiped_id: int, direction: SwipeDirection) -> Swipe:
        swipe = Swipe(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction, created_at=utc_now_naive())
        try:
            async with self.session.begin_nested():
                self.session.add(swipe)
        except IntegrityError as exc:
            raise DuplicateSwipeError("already swiped on this user") from exc
        return swipe

    async def swiped_ids(self, swiper_id: int) -> List[int]:
        rows = await self.session.scalars(select(Swipe.swiped_id).where(Swipe.swiper_id == swiper_id))
        return list(rows.all())


class SqlAlchemyMatchRepository(MatchRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, user1_id: int, user2_id: int) -> Match | None:
        stmt = select(Match).where(Match.user1_id == user1_id, Match.user2_id == user2_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Match) else None

    async def get_or_create(self, user1_id: int, user2_id: int) -> Tuple[Match, bool]:
        existing = await self.get_for_update(user1_id, user2_id)
        if existing is not None:
            return existing, False
        now = utc_now_naive()
        match = Match(
            user1_id=user1_id,
            user2_id=user2_id,
            is_active=True,
            user1_likes=True,
            user2_likes=True,
            matched_at=now,
            created_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(match)
        except IntegrityError:
            # Lost the insert race; the unique pair constraint kept one row.
            winner = await self.get_for_update(user1_id, user2_id)
            if winner is None:
                raise
            return winner, False
        return match, True

    async def list_active(self, user_id: int) -> List[Tuple[Match, User]]:
        other_id = case((Match.user1_id == user_id, Match.user2_id), else_=Match.user1_id)
        stmt = (
            select(Match, User)
            .join(User, User.id == other_id)
            .where(or_(Match.user1_id == user_id, Match.user2_id == user_id), Match.is_active.is_(True))
            .order_by(Match.matched_at.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Match, User]], list(rows.all()))

    async def matched_ids(self, user_id: int) -> List[int]:
        stmt = select(Match.user1_id, Match.user2_id).where(
            or_(Match.user1_id == user_id, Match.user2_id == user_id),
            Match.is_active.is_(True),
        )
        rows = await self.session.execute(stmt)
        return [u2 if u1 == user_id else u1 for u1, u2 in rows.all()]

    async def is_matched(self, user_a: int, user_b: int) -> bool:
        user1_id, user2_id = canonical_pair(user_a, user_b)
        stmt = select(Match.id).where(
            Match.user1_id == user1_id,
            Match.user2_id == user2_id,
            Match.is_active.is_(True),
        )
        return await self.session.scalar(stmt) is not None

    async def save(self, match: Match) -> Match:
        self.session.add(match)
        await self.session.flush()
        return match
