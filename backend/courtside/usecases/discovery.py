from typing import Optional

from ..domain.errors import NotFoundError
from ..domain.ranking import RankedCandidate, rank_candidates
from ..domain.repositories import MatchRepository, SwipeRepository, UserRepository

# Rank over a wider pool than we return so the best candidates are not cut
# by storage order before scoring.
POOL_FACTOR = 5
MIN_POOL = 100


async def discover(
    user_repo: UserRepository,
    swipe_repo: SwipeRepository,
    match_repo: MatchRepository,
    *,
    user_id: int,
    sport: Optional[str] = None,
    max_distance_km: Optional[float] = None,
    limit: int = 20,
) -> list[RankedCandidate]:
    seeker = await user_repo.profile(user_id)
    if seeker is None:
        raise NotFoundError("user not found")

    exclude = {user_id}
    exclude.update(await swipe_repo.swiped_ids(user_id))
    exclude.update(await match_repo.matched_ids(user_id))

    pool = await user_repo.candidate_profiles(
        exclude=sorted(exclude),
        sport=sport,
        limit=max(limit * POOL_FACTOR, MIN_POOL),
    )
    return rank_candidates(seeker, pool, limit=limit, max_distance_km=max_distance_km)
