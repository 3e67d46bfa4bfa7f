# app/services/admission.py
from __future__ import annotations

import enum
import logging
import math
import time
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Protocol

from fastapi import Request
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi.util import get_remote_address

from app.core.errors import Blocked, RateLimited

logger = logging.getLogger(__name__)

SEARCH_NAMESPACE = "image-search"


class DenialReason(str, enum.Enum):
    RATE_LIMIT = "RATE_LIMIT"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    reason: Optional[DenialReason] = None
    remaining: int = 0
    reset_in_seconds: int = 0

    def is_denied(self) -> bool:
        return not self.allowed


class AdmissionCheck(Protocol):
    def protect(self, fingerprint: str, requested: int = 1) -> AdmissionDecision: ...


class SearchAdmission:
    """
    Allow/deny gate in front of the image search model call.

    - fingerprints on the blocklist are denied outright (no quota consumed)
    - everyone else shares a moving-window limit, e.g. "10/hour" per fingerprint
    """

    def __init__(
        self,
        rate_limit: str = "10/hour",
        storage_uri: str = "memory://",
        blocked: Iterable[str] = (),
    ) -> None:
        self.limit = parse(rate_limit)
        self.limiter = MovingWindowRateLimiter(storage_from_string(storage_uri))
        self.blocked: FrozenSet[str] = frozenset(b.strip() for b in blocked if b and b.strip())

    def protect(self, fingerprint: str, requested: int = 1) -> AdmissionDecision:
        if fingerprint in self.blocked:
            return AdmissionDecision(allowed=False, reason=DenialReason.BLOCKED)

        allowed = self.limiter.hit(self.limit, SEARCH_NAMESPACE, fingerprint, cost=requested)
        stats = self.limiter.get_window_stats(self.limit, SEARCH_NAMESPACE, fingerprint)
        reset_in = max(0, math.ceil(stats.reset_time - time.time()))

        if allowed:
            return AdmissionDecision(allowed=True, remaining=stats.remaining, reset_in_seconds=reset_in)

        return AdmissionDecision(
            allowed=False,
            reason=DenialReason.RATE_LIMIT,
            remaining=stats.remaining,
            reset_in_seconds=reset_in,
        )


def request_fingerprint(request: Request) -> str:
    return get_remote_address(request)


def enforce(decision: AdmissionDecision) -> None:
    """Raise RateLimited / Blocked for a denied decision; no-op when allowed."""
    if decision.allowed:
        return

    if decision.reason is DenialReason.RATE_LIMIT:
        logger.warning(
            "RATE_LIMIT_EXCEEDED remaining=%s resetInSeconds=%s",
            decision.remaining,
            decision.reset_in_seconds,
        )
        raise RateLimited(remaining=decision.remaining, reset_in_seconds=decision.reset_in_seconds)

    raise Blocked()
