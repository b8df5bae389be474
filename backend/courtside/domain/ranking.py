"""Discovery ranking for playpal candidates.

Score is a fixed-weight linear sum:

* proximity: 30 under 5 km, 20 under 10 km, 10 under 25 km
* 15 per shared activity
* 10 per shared activity where skill levels are at most one step apart
* 15 if any weekly availability window overlaps on the same day

Ties are broken by ascending user id so the order is stable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import time
from typing import Iterable, Optional

from ..models import SkillLevel

EARTH_RADIUS_KM = 6371.0

PROXIMITY_BANDS: tuple[tuple[float, int], ...] = ((5.0, 30), (10.0, 20), (25.0, 10))
SHARED_ACTIVITY_WEIGHT = 15
SKILL_MATCH_WEIGHT = 10
SCHEDULE_OVERLAP_WEIGHT = 15

SKILL_ORDER: tuple[SkillLevel, ...] = (
    SkillLevel.BEGINNER,
    SkillLevel.INTERMEDIATE,
    SkillLevel.ADVANCED,
    SkillLevel.PROFESSIONAL,
)


@dataclass(frozen=True)
class WeeklyWindow:
    day_of_week: int
    start: time
    end: time

    def overlaps(self, other: "WeeklyWindow") -> bool:
        return self.day_of_week == other.day_of_week and self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class PlayerProfile:
    user_id: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    skills: dict[str, SkillLevel] = field(default_factory=dict)
    availability: tuple[WeeklyWindow, ...] = ()

    @property
    def located(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class RankedCandidate:
    profile: PlayerProfile
    score: int
    reasons: tuple[str, ...]
    distance_km: Optional[float] = None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def proximity_points(distance_km: float) -> int:
    for limit, points in PROXIMITY_BANDS:
        if distance_km < limit:
            return points
    return 0


def _skill_gap(a: SkillLevel, b: SkillLevel) -> int:
    return abs(SKILL_ORDER.index(a) - SKILL_ORDER.index(b))


def score_candidate(
    seeker: PlayerProfile,
    candidate: PlayerProfile,
    *,
    max_distance_km: Optional[float] = None,
) -> Optional[RankedCandidate]:
    """Score one candidate; ``None`` when it lies beyond ``max_distance_km``."""
    score = 0
    reasons: list[str] = []
    distance: Optional[float] = None

    if seeker.located and candidate.located:
        distance = haversine_km(
            seeker.latitude,  # type: ignore[arg-type]
            seeker.longitude,  # type: ignore[arg-type]
            candidate.latitude,  # type: ignore[arg-type]
            candidate.longitude,  # type: ignore[arg-type]
        )
        if max_distance_km is not None and distance > max_distance_km:
            return None
        score += proximity_points(distance)
        reasons.append(f"Distance: {distance:.1f}km")

    shared = sorted(set(seeker.skills) & set(candidate.skills))
    if shared:
        score += SHARED_ACTIVITY_WEIGHT * len(shared)
        reasons.append(f"Common sports: {', '.join(shared)}")
        compatible = [s for s in shared if _skill_gap(seeker.skills[s], candidate.skills[s]) <= 1]
        if compatible:
            score += SKILL_MATCH_WEIGHT * len(compatible)
            reasons.append("Compatible skill levels")

    if any(mine.overlaps(theirs) for mine in seeker.availability for theirs in candidate.availability):
        score += SCHEDULE_OVERLAP_WEIGHT
        reasons.append("Availability overlap")

    return RankedCandidate(profile=candidate, score=score, reasons=tuple(reasons), distance_km=distance)


def rank_candidates(
    seeker: PlayerProfile,
    candidates: Iterable[PlayerProfile],
    *,
    limit: int,
    max_distance_km: Optional[float] = None,
) -> list[RankedCandidate]:
    scored: list[RankedCandidate] = []
    for candidate in candidates:
        ranked = score_candidate(seeker, candidate, max_distance_km=max_distance_km)
        if ranked is not None:
            scored.append(ranked)
    scored.sort(key=lambda r: (-r.score, r.profile.user_id))
    return scored[:limit]
