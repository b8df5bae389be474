from dataclasses import dataclass
from typing import Optional

from ..domain.errors import DuplicateSwipeError, NotFoundError, ValidationError
from ..domain.repositories import MatchRepository, SwipeRepository, UserRepository
from ..domain.services import canonical_pair
from ..models import Match, Swipe, SwipeDirection, User
from ..utils.time import utc_now_naive


@dataclass(frozen=True)
class SwipeOutcome:
    swipe: Swipe
    match: Optional[Match] = None
    created: bool = False
    reactivated: bool = False

    @property
    def is_match(self) -> bool:
        return self.match is not None and self.match.is_active


def _set_consent(match: Match, user_id: int, value: bool) -> None:
    if match.user1_id == user_id:
        match.user1_likes = value
    else:
        match.user2_likes = value


async def swipe(
    user_repo: UserRepository,
    swipe_repo: SwipeRepository,
    match_repo: MatchRepository,
    *,
    swiper_id: int,
    swiped_id: int,
    direction: SwipeDirection,
) -> SwipeOutcome:
    if swiper_id == swiped_id:
        raise ValidationError("cannot swipe on yourself")
    if await user_repo.get(swiped_id) is None:
        raise NotFoundError("user not found")

    # Both directions of a pair contend on the same two user rows, taken in
    # ascending order, so the reciprocal check below never misses a swipe
    # that is being written concurrently.
    await user_repo.lock_pair(swiper_id, swiped_id)
    user1_id, user2_id = canonical_pair(swiper_id, swiped_id)

    existing = await swipe_repo.get(swiper_id, swiped_id)
    if existing is not None:
        if direction == SwipeDirection.RIGHT:
            match = await match_repo.get_for_update(user1_id, user2_id)
            if match is not None and not match.is_active:
                return await _resignal(match_repo, match, existing, swiper_id)
        raise DuplicateSwipeError("already swiped on this user")

    recorded = await swipe_repo.create(swiper_id, swiped_id, direction)
    if direction != SwipeDirection.RIGHT:
        return SwipeOutcome(swipe=recorded)

    inverse = await swipe_repo.get(swiped_id, swiper_id, for_update=True)
    if inverse is None or inverse.direction != SwipeDirection.RIGHT:
        return SwipeOutcome(swipe=recorded)

    match, created = await match_repo.get_or_create(user1_id, user2_id)
    if not match.is_active:
        match.is_active = True
        match.user1_likes = match.user2_likes = True
        match.matched_at = utc_now_naive()
        match = await match_repo.save(match)
    return SwipeOutcome(swipe=recorded, match=match, created=created)


async def _resignal(match_repo: MatchRepository, match: Match, existing: Swipe, swiper_id: int) -> SwipeOutcome:
    _set_consent(match, swiper_id, True)
    reactivated = match.user1_likes and match.user2_likes
    if reactivated:
        match.is_active = True
        match.matched_at = utc_now_naive()
    match = await match_repo.save(match)
    return SwipeOutcome(swipe=existing, match=match, reactivated=reactivated)


async def unmatch(match_repo: MatchRepository, *, user_id: int, other_id: int) -> Match:
    user1_id, user2_id = canonical_pair(user_id, other_id)
    match = await match_repo.get_for_update(user1_id, user2_id)
    if match is None or not match.is_active:
        raise NotFoundError("match not found")
    match.is_active = False
    match.user1_likes = match.user2_likes = False
    return await match_repo.save(match)


async def list_matches(match_repo: MatchRepository, *, user_id: int) -> list[tuple[Match, User]]:
    return await match_repo.list_active(user_id)


async def get_profile(
    user_repo: UserRepository,
    match_repo: MatchRepository,
    *,
    user_id: int,
    other_id: int,
) -> tuple[User, bool]:
    other = await user_repo.get(other_id)
    if other is None:
        raise NotFoundError("user not found")
    is_matched = other_id != user_id and await match_repo.is_matched(user_id, other_id)
    return other, is_matched
