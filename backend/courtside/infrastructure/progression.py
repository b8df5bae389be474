"""
Progression (XP) side effects.
The XP service is external; we only tell it what happened. Delivery is
best-effort: failures are logged and never undo the primary operation.
"""
from __future__ import annotations

import logging
from typing import Literal

import httpx

from ..domain.repositories import ProgressionHook
from ..utils.request_id import get_request_id

logger = logging.getLogger(__name__)

ProgressionSource = Literal[
    "booking_completed",
    "gametime_attended",
    "gametime_hosted",
    "event_joined",
]

XP_VALUES: dict[str, int] = {
    "booking_completed": 50,
    "gametime_attended": 100,
    "gametime_hosted": 150,
    "event_joined": 60,
}


class LoggingProgressionHook:
    """Used when no XP service is configured."""

    async def award(self, *, user_id: int, source: str, reference_id: int | None) -> None:
        logger.info(
            "progression award user_id=%s source=%s xp=%s reference_id=%s",
            user_id,
            source,
            XP_VALUES.get(source, 0),
            reference_id,
        )


class HttpProgressionHook:
    def __init__(self, url: str, *, timeout: float = 2.0, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    async def award(self, *, user_id: int, source: str, reference_id: int | None) -> None:
        payload = {
            "user_id": user_id,
            "source": source,
            "amount": XP_VALUES.get(source, 0),
            "reference_id": reference_id,
        }
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        if self._client is not None:
            resp = await self._client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        resp.raise_for_status()


async def award_progression(
    hook: ProgressionHook,
    *,
    user_id: int,
    source: ProgressionSource,
    reference_id: int | None = None,
) -> bool:
    """Invoke the hook; returns False instead of raising when it fails."""
    try:
        await hook.award(user_id=user_id, source=source, reference_id=reference_id)
    except Exception as e:
        logger.warning("progression award failed user_id=%s source=%s: %s", user_id, source, e)
        return False
    return True
