"""Abstract access-code store."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, Optional

from quizgate.app.core.logging import get_logger
from quizgate.app.exceptions import AccessCodeExistsError, InputValidationError
from quizgate.app.services.access_codes.models import (
    AccessCode,
    is_valid_code_format,
    normalize_code,
)

logger = get_logger(__name__)


class AccessCodeStore(ABC):
    """Abstract base class for access-code backends.

    Every backend must make ``find_valid_and_consume`` atomic per code:
    two concurrent callers racing for the last remaining use must not both
    succeed. Codes passed in are normalized by the store itself.
    """

    async def initialize(self) -> None:
        """Prepare the backing store (create tables, open connections)."""

    async def close(self) -> None:
        """Release backing store resources."""

    @abstractmethod
    async def find_valid_and_consume(self, code: str, now: datetime) -> Optional[AccessCode]:
        """Consume one use of a currently valid code.

        Args:
            code: Raw or normalized code
            now: Evaluation instant for expiry

        Returns:
            The post-increment AccessCode, or None when the code does not
            exist, is exhausted or is expired.
        """

    @abstractmethod
    async def lookup(self, code: str) -> Optional[AccessCode]:
        """Read-only fetch, used to explain a failed consumption."""

    @abstractmethod
    async def create(
        self,
        code: str,
        max_uses: int,
        ttl: Optional[timedelta],
        now: datetime,
    ) -> AccessCode:
        """Create a code.

        Raises:
            AccessCodeExistsError: If the normalized code already exists
        """

    @abstractmethod
    async def reset(self, code: str) -> AccessCode:
        """Set current_uses back to 0.

        Raises:
            AccessCodeNotFoundError: If the code does not exist
        """

    @abstractmethod
    async def list_codes(self) -> list[AccessCode]:
        """Return every stored code (inventory view)."""

    async def seed(
        self,
        codes: Iterable[str],
        max_uses: int,
        ttl: Optional[timedelta],
        now: datetime,
    ) -> int:
        """Create static codes from configuration, keeping existing ones.

        Returns:
            Number of codes created.
        """
        created = 0
        for raw in codes:
            try:
                await self.create(raw, max_uses, ttl, now)
                created += 1
            except AccessCodeExistsError:
                logger.debug(f"Static access code {normalize_code(raw)} already present")
            except InputValidationError as e:
                logger.warning(f"Skipping static access code {raw!r}: {e.message}")
        return created

    @staticmethod
    def _prepare_new(code: str, max_uses: int, ttl: Optional[timedelta], now: datetime) -> AccessCode:
        """Validate creation arguments and build the initial record."""
        normalized = normalize_code(code)
        if not is_valid_code_format(normalized):
            raise InputValidationError("Access code must be 1-20 uppercase letters or digits")
        if max_uses < 1:
            raise InputValidationError("maxUses must be a positive integer")
        if ttl is not None and ttl.total_seconds() <= 0:
            raise InputValidationError("ttl must be positive")
        return AccessCode(
            code=normalized,
            max_uses=max_uses,
            current_uses=0,
            created_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )
