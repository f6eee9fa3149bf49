"""
Admission policy: role-based rate tiers and the request decision service.

The gate asks a DecisionService to classify each request against the caller's
rate-limit rule. LocalDecisionService does this in-process: User-Agent bot
detection, attack-signature shielding and a moving-window counter from the
`limits` package. A hosted decision service can be swapped in by implementing
the same `classify` coroutine.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol
from urllib.parse import unquote_plus

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

GUEST_ROLE = "guest"

# Attack signatures checked against the URL-decoded path and query string.
SHIELD_PATTERNS = (
    re.compile(r"\.\./|\.\.\\"),
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"\bunion\b.+\bselect\b", re.IGNORECASE),
    re.compile(r"'\s*or\s*'?\d+'?\s*=\s*'?\d+", re.IGNORECASE),
    re.compile(r";\s*drop\s+table\b", re.IGNORECASE),
    re.compile(r"\x00"),
)


class DecisionKind(str, Enum):
    ALLOW = "allow"
    DENY_BOT = "deny_bot"
    DENY_SHIELD = "deny_shield"
    DENY_RATE_LIMIT = "deny_rate_limit"


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    reason: str = ""

    @property
    def is_denied(self) -> bool:
        return self.kind is not DecisionKind.ALLOW


ALLOW = Decision(DecisionKind.ALLOW)


@dataclass(frozen=True)
class RateTier:
    """Per-role request budget and the message returned when it is exceeded."""

    role: str
    limit: int
    message: str


@dataclass(frozen=True)
class RateLimitRule:
    """Sliding-window rule: at most max_requests per interval_seconds, counted under name."""

    name: str
    interval_seconds: int
    max_requests: int


@dataclass(frozen=True)
class RequestContext:
    """The parts of a request the decision service looks at."""

    client_ip: str
    user_agent: str
    path: str
    method: str
    query: str = ""


class DecisionService(Protocol):
    async def classify(self, context: RequestContext, rule: RateLimitRule) -> Decision: ...


def tier_for_role(role: str | None, settings: Settings) -> RateTier:
    """Map a caller role to its tier. Unknown or missing roles get the guest tier."""
    if role == "admin":
        limit = settings.RATE_LIMIT_ADMIN
        label = "Admin"
    elif role == "user":
        limit = settings.RATE_LIMIT_USER
        label = "User"
    else:
        role = GUEST_ROLE
        limit = settings.RATE_LIMIT_GUEST
        label = "Guest"
    window = _window_label(settings.RATE_LIMIT_WINDOW_SECONDS)
    return RateTier(
        role=role,
        limit=limit,
        message=f"{label} rate limit exceeded ({limit} per {window}). Slow down.",
    )


def rule_for_tier(tier: RateTier, settings: Settings) -> RateLimitRule:
    return RateLimitRule(
        name=f"{tier.role}-rate-limit",
        interval_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        max_requests=tier.limit,
    )


def _window_label(seconds: int) -> str:
    if seconds == 60:
        return "min"
    if seconds % 60 == 0:
        return f"{seconds // 60} min"
    return f"{seconds} s"


class LocalDecisionService:
    """In-process decision service backed by a moving-window limiter."""

    def __init__(
        self,
        bot_patterns: Iterable[str] = (),
        storage: Storage | None = None,
    ) -> None:
        self._bot_patterns = tuple(p.lower() for p in bot_patterns if p)
        self._limiter = MovingWindowRateLimiter(storage or MemoryStorage())

    @classmethod
    def from_settings(cls, settings: Settings) -> LocalDecisionService:
        return cls(bot_patterns=settings.BOT_USER_AGENT_PATTERNS)

    async def classify(self, context: RequestContext, rule: RateLimitRule) -> Decision:
        if self._is_bot(context.user_agent):
            return Decision(DecisionKind.DENY_BOT, reason="user-agent")
        signature = self._attack_signature(context)
        if signature is not None:
            return Decision(DecisionKind.DENY_SHIELD, reason=signature)
        item = RateLimitItemPerSecond(rule.max_requests, rule.interval_seconds)
        if not self._limiter.hit(item, rule.name, context.client_ip):
            return Decision(DecisionKind.DENY_RATE_LIMIT, reason=rule.name)
        return ALLOW

    def _is_bot(self, user_agent: str) -> bool:
        ua = (user_agent or "").strip().lower()
        if not ua:
            return True
        return any(pattern in ua for pattern in self._bot_patterns)

    @staticmethod
    def _attack_signature(context: RequestContext) -> str | None:
        target = unquote_plus(context.path)
        if context.query:
            target = f"{target}?{unquote_plus(context.query)}"
        for pattern in SHIELD_PATTERNS:
            if pattern.search(target):
                return pattern.pattern
        return None
