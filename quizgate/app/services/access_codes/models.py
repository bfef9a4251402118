"""Access code data model and normalization helpers."""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from quizgate.app.core.utils import isoformat, utcnow

CODE_PATTERN = re.compile(r"^[A-Z0-9]{1,20}$")


def normalize_code(raw: str) -> str:
    """Trim and uppercase a user-supplied code ("  abc123 " -> "ABC123")."""
    return raw.strip().upper()


def is_valid_code_format(code: str) -> bool:
    """Check an already-normalized code against the allowed format."""
    return bool(CODE_PATTERN.fullmatch(code))


@dataclass(frozen=True)
class AccessCode:
    """A bearer code with usage-count and expiry ceilings.

    Attributes:
        code: Normalized identifier (uppercase alphanumeric, 1-20 chars)
        max_uses: Ceiling on successful consumptions
        current_uses: Successful consumptions so far
        created_at: Creation time
        expires_at: Expiry instant, None for codes that never expire
        last_used_at: Time of the latest successful consumption
    """
    code: str
    max_uses: int
    current_uses: int = 0
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    @property
    def remaining_uses(self) -> int:
        return max(0, self.max_uses - self.current_uses)

    def is_exhausted(self) -> bool:
        return self.current_uses >= self.max_uses

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return not self.is_exhausted() and not self.is_expired(now)

    def rejection_reason(self, now: datetime) -> str:
        """Why this code cannot be consumed right now (exhaustion wins)."""
        if self.is_exhausted():
            return "exhausted"
        if self.is_expired(now):
            return "expired"
        return "invalid"

    def consumed(self, now: datetime) -> "AccessCode":
        return replace(self, current_uses=self.current_uses + 1, last_used_at=now)

    def reset(self) -> "AccessCode":
        return replace(self, current_uses=0)

    def to_dict(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "code": self.code,
            "maxUses": self.max_uses,
            "currentUses": self.current_uses,
            "remainingUses": self.remaining_uses,
            "createdAt": isoformat(self.created_at),
            "expiresAt": isoformat(self.expires_at),
            "lastUsedAt": isoformat(self.last_used_at),
        }
        if now is not None:
            data["valid"] = self.is_valid(now)
        return data
