"""Per-delivery processing deadline."""

from datetime import datetime, timedelta

from cnabproc.domain.errors import DeadlineExceeded
from cnabproc.utils.clock import Clock


class Deadline:
    """Point in time after which in-flight work must be abandoned."""

    def __init__(self, clock: Clock, expires_at: datetime):
        self.clock = clock
        self.expires_at = expires_at

    @classmethod
    def starting_now(
        cls, clock: Clock, timeout_seconds: float, not_after: datetime | None = None
    ) -> "Deadline":
        """Deadline ``timeout_seconds`` from now, capped at ``not_after``."""
        expires_at = clock.now() + timedelta(seconds=timeout_seconds)
        if not_after is not None and not_after < expires_at:
            expires_at = not_after
        return cls(clock, expires_at)

    @property
    def expired(self) -> bool:
        return self.clock.now() >= self.expires_at

    def remaining_seconds(self) -> float:
        return max(0.0, (self.expires_at - self.clock.now()).total_seconds())

    def check(self, phase: str) -> None:
        """Raise if the deadline has passed.

        Raises:
            DeadlineExceeded: If the deadline has passed
        """
        if self.expired:
            raise DeadlineExceeded(f"Processing deadline exceeded before {phase}")
