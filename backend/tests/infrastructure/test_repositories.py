from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Tuple, TypeVar

import pytest
from courtside.domain.errors import CapacityError, DuplicateSwipeError, SlotUnavailableError, StateError
from courtside.infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyEventLedger,
    SqlAlchemyEventRepository,
    SqlAlchemyGametimeLedger,
    SqlAlchemyGametimeRepository,
    SqlAlchemyMatchRepository,
    SqlAlchemySwipeRepository,
    SqlAlchemyUserRepository,
    SqlAlchemyVenueRepository,
)
from courtside.models import (
    EventRegistration,
    EventType,
    Gametime,
    GametimeParticipant,
    GametimeSkill,
    GametimeType,
    Match,
    Swipe,
    SwipeDirection,
    User,
    Venue,
    VenueActivity,
)
from courtside.usecases import bookings, events, gametimes, playpals
from courtside.utils.time import utc_now_naive
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

Sessions = async_sessionmaker[AsyncSession]
R = TypeVar("R")

START = (utc_now_naive() + timedelta(days=7)).replace(hour=9, minute=0, second=0, microsecond=0)


async def _in_tx(sessions: Sessions, work: Callable[[AsyncSession], Awaitable[R]]) -> R:
    async with sessions() as session:
        async with session.begin():
            return await work(session)


async def _users(sessions: Sessions, *names: str) -> List[int]:
    async def add(session: AsyncSession) -> List[int]:
        now = utc_now_naive()
        users = [User(email=f"{n}@courtside.test", name=n, created_at=now, updated_at=now) for n in names]
        session.add_all(users)
        await session.flush()
        return [u.id for u in users]

    return await _in_tx(sessions, add)


async def _new_gametime(sessions: Sessions, creator_id: int, max_players: int) -> int:
    async def create(session: AsyncSession) -> int:
        gametime = await gametimes.create_gametime(
            SqlAlchemyGametimeRepository(session),
            creator_id=creator_id,
            title="Sunday doubles",
            sport_name="Tennis",
            event_type=GametimeType.CASUAL,
            skill_level=GametimeSkill.ANY,
            start_time=START,
            end_time=START + timedelta(hours=2),
            max_players=max_players,
        )
        return gametime.id

    return await _in_tx(sessions, create)


async def _counter(sessions: Sessions, gametime_id: int) -> int:
    async with sessions() as session:
        value = await session.scalar(select(Gametime.current_players).where(Gametime.id == gametime_id))
    return int(value or 0)


@pytest.mark.asyncio
async def test_gametime_capacity_two_join_leave_rejoin(sqlite_sessions: Sessions) -> None:
    creator, x, y = await _users(sqlite_sessions, "creator", "x", "y")
    gametime_id = await _new_gametime(sqlite_sessions, creator, max_players=2)
    assert await _counter(sqlite_sessions, gametime_id) == 1

    def join(user_id: int) -> Callable[[AsyncSession], Awaitable[int]]:
        async def run(session: AsyncSession) -> int:
            result = await gametimes.join_gametime(
                SqlAlchemyGametimeLedger(session), gametime_id=gametime_id, user_id=user_id
            )
            return result.occupancy

        return run

    async def leave_x(session: AsyncSession) -> int:
        result = await gametimes.leave_gametime(SqlAlchemyGametimeLedger(session), gametime_id=gametime_id, user_id=x)
        return result.occupancy

    assert await _in_tx(sqlite_sessions, join(x)) == 2
    with pytest.raises(CapacityError):
        await _in_tx(sqlite_sessions, join(y))
    assert await _counter(sqlite_sessions, gametime_id) == 2

    assert await _in_tx(sqlite_sessions, leave_x) == 1
    assert await _in_tx(sqlite_sessions, join(y)) == 2
    with pytest.raises(CapacityError):
        await _in_tx(sqlite_sessions, join(x))


@pytest.mark.asyncio
async def test_gametime_rejoin_reuses_participant_row(sqlite_sessions: Sessions) -> None:
    creator, x = await _users(sqlite_sessions, "creator", "x")
    gametime_id = await _new_gametime(sqlite_sessions, creator, max_players=4)

    async def join(session: AsyncSession) -> bool:
        result = await gametimes.join_gametime(SqlAlchemyGametimeLedger(session), gametime_id=gametime_id, user_id=x)
        return result.rejoined

    async def leave(session: AsyncSession) -> None:
        await gametimes.leave_gametime(SqlAlchemyGametimeLedger(session), gametime_id=gametime_id, user_id=x)

    assert await _in_tx(sqlite_sessions, join) is False
    await _in_tx(sqlite_sessions, leave)
    assert await _counter(sqlite_sessions, gametime_id) == 1
    assert await _in_tx(sqlite_sessions, join) is True
    assert await _counter(sqlite_sessions, gametime_id) == 2

    async with sqlite_sessions() as session:
        rows = await session.scalar(
            select(func.count(GametimeParticipant.id)).where(GametimeParticipant.gametime_id == gametime_id)
        )
    assert rows == 2


@pytest.mark.asyncio
async def test_gametime_counter_never_drops_below_creator_seat(sqlite_sessions: Sessions) -> None:
    creator, x = await _users(sqlite_sessions, "creator", "x")
    gametime_id = await _new_gametime(sqlite_sessions, creator, max_players=3)

    async def join_then_force_leave(session: AsyncSession) -> int:
        ledger = SqlAlchemyGametimeLedger(session)
        await gametimes.join_gametime(ledger, gametime_id=gametime_id, user_id=x)
        target = await ledger.lock(gametime_id)
        assert target is not None
        await ledger.withdraw(target, x)
        # A second release for the same seat still leaves the creator counted.
        return await ledger.withdraw(target, x)

    assert await _in_tx(sqlite_sessions, join_then_force_leave) == 1

    async def creator_leaves(session: AsyncSession) -> None:
        await gametimes.leave_gametime(SqlAlchemyGametimeLedger(session), gametime_id=gametime_id, user_id=creator)

    with pytest.raises(StateError):
        await _in_tx(sqlite_sessions, creator_leaves)


@pytest.mark.asyncio
async def test_event_registration_counts_live_rows(sqlite_sessions: Sessions) -> None:
    organizer, a, b = await _users(sqlite_sessions, "organizer", "a", "b")

    async def create(session: AsyncSession) -> int:
        event = await events.create_event(
            SqlAlchemyEventRepository(session),
            organizer_id=organizer,
            title="Winter ladder",
            sport_name="Squash",
            event_type=EventType.LEAGUE,
            start_time=START,
            end_time=START + timedelta(hours=3),
            max_participants=2,
        )
        return event.id

    event_id = await _in_tx(sqlite_sessions, create)

    def register(user_id: int) -> Callable[[AsyncSession], Awaitable[Tuple[int, bool]]]:
        async def run(session: AsyncSession) -> Tuple[int, bool]:
            result = await events.register(SqlAlchemyEventLedger(session), event_id=event_id, user_id=user_id)
            return result.occupancy, result.rejoined

        return run

    def unregister(user_id: int) -> Callable[[AsyncSession], Awaitable[int]]:
        async def run(session: AsyncSession) -> int:
            result = await events.unregister(SqlAlchemyEventLedger(session), event_id=event_id, user_id=user_id)
            return result.occupancy

        return run

    assert await _in_tx(sqlite_sessions, register(organizer)) == (1, False)
    assert await _in_tx(sqlite_sessions, register(a)) == (2, False)
    with pytest.raises(CapacityError):
        await _in_tx(sqlite_sessions, register(b))

    # The organizer holds no implicit seat and may give theirs up.
    assert await _in_tx(sqlite_sessions, unregister(organizer)) == 1
    assert await _in_tx(sqlite_sessions, unregister(a)) == 0
    assert await _in_tx(sqlite_sessions, register(a)) == (1, True)

    async with sqlite_sessions() as session:
        rows = await session.scalar(
            select(func.count(EventRegistration.id)).where(EventRegistration.event_id == event_id)
        )
        count = await SqlAlchemyEventRepository(session).registered_count(event_id)
    assert rows == 2
    assert count == 1


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected_venue_wide(sqlite_sessions: Sessions) -> None:
    (player,) = await _users(sqlite_sessions, "player")

    async def add_venue(session: AsyncSession) -> int:
        now = utc_now_naive()
        venue = Venue(name="Harbour Courts", currency="AUD", timezone="UTC", created_at=now, updated_at=now)
        session.add(venue)
        await session.flush()
        session.add_all(
            [
                VenueActivity(venue_id=venue.id, sport_name="Tennis", hourly_rate_cents=2000),
                VenueActivity(venue_id=venue.id, sport_name="Pickleball", hourly_rate_cents=1500),
            ]
        )
        return venue.id

    venue_id = await _in_tx(sqlite_sessions, add_venue)

    def book(sport: str, start: datetime, end: datetime) -> Callable[[AsyncSession], Awaitable[int]]:
        async def run(session: AsyncSession) -> int:
            booking, _ = await bookings.create_booking(
                SqlAlchemyVenueRepository(session),
                SqlAlchemyBookingRepository(session),
                venue_id=venue_id,
                user_id=player,
                sport_name=sport,
                starts_at=start,
                ends_at=end,
            )
            return booking.total_cents

        return run

    assert await _in_tx(sqlite_sessions, book("tennis", START, START + timedelta(minutes=90))) == 3000
    with pytest.raises(SlotUnavailableError):
        await _in_tx(sqlite_sessions, book("Pickleball", START + timedelta(hours=1), START + timedelta(hours=2)))
    assert (
        await _in_tx(sqlite_sessions, book("Tennis", START + timedelta(minutes=90), START + timedelta(hours=2)))
        == 1000
    )


def _swipe(
    a: int, b: int, direction: SwipeDirection = SwipeDirection.RIGHT
) -> Callable[[AsyncSession], Awaitable[playpals.SwipeOutcome]]:
    async def run(session: AsyncSession) -> playpals.SwipeOutcome:
        return await playpals.swipe(
            SqlAlchemyUserRepository(session),
            SqlAlchemySwipeRepository(session),
            SqlAlchemyMatchRepository(session),
            swiper_id=a,
            swiped_id=b,
            direction=direction,
        )

    return run


@pytest.mark.asyncio
async def test_unmatch_then_relike_reactivates_same_match(sqlite_sessions: Sessions) -> None:
    low, high = await _users(sqlite_sessions, "low", "high")

    first = await _in_tx(sqlite_sessions, _swipe(high, low))
    assert first.match is None
    closing = await _in_tx(sqlite_sessions, _swipe(low, high))
    assert closing.is_match and closing.created
    assert closing.match is not None
    match_id = closing.match.id
    assert (closing.match.user1_id, closing.match.user2_id) == (low, high)

    async def unmatch(session: AsyncSession) -> None:
        await playpals.unmatch(SqlAlchemyMatchRepository(session), user_id=high, other_id=low)

    await _in_tx(sqlite_sessions, unmatch)

    half = await _in_tx(sqlite_sessions, _swipe(low, high))
    assert not half.is_match and not half.reactivated
    again = await _in_tx(sqlite_sessions, _swipe(high, low))
    assert again.reactivated and again.is_match
    assert again.match is not None and again.match.id == match_id

    async with sqlite_sessions() as session:
        matches = await session.scalar(select(func.count(Match.id)))
        swipes = await session.scalar(select(func.count(Swipe.id)))
    assert matches == 1
    assert swipes == 2


@pytest.mark.asyncio
async def test_duplicate_swipe_insert_rolls_back_to_savepoint(sqlite_sessions: Sessions) -> None:
    a, b = await _users(sqlite_sessions, "a", "b")

    async def twice(session: AsyncSession) -> int:
        repo = SqlAlchemySwipeRepository(session)
        await repo.create(a, b, SwipeDirection.LEFT)
        with pytest.raises(DuplicateSwipeError):
            await repo.create(a, b, SwipeDirection.RIGHT)
        return len(await repo.swiped_ids(a))

    assert await _in_tx(sqlite_sessions, twice) == 1
    with pytest.raises(DuplicateSwipeError):
        await _in_tx(sqlite_sessions, _swipe(a, b, SwipeDirection.LEFT))


class LateMatchRepository(SqlAlchemyMatchRepository):
    """Misses the existing row on the first lookup, as a racing insert would."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.lookups = 0

    async def get_for_update(self, user1_id: int, user2_id: int) -> Match | None:
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super().get_for_update(user1_id, user2_id)


@pytest.mark.asyncio
async def test_match_insert_race_returns_existing_row(sqlite_sessions: Sessions) -> None:
    a, b = await _users(sqlite_sessions, "a", "b")

    async def winner(session: AsyncSession) -> int:
        match, created = await SqlAlchemyMatchRepository(session).get_or_create(a, b)
        assert created
        return match.id

    winner_id = await _in_tx(sqlite_sessions, winner)

    async def loser(session: AsyncSession) -> Tuple[int, bool]:
        match, created = await LateMatchRepository(session).get_or_create(a, b)
        return match.id, created

    assert await _in_tx(sqlite_sessions, loser) == (winner_id, False)
