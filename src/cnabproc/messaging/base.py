"""Abstract work queue interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class ReceivedMessage:
    """A delivered message, hidden from other consumers until ``visible_until``.

    ``receive_count`` includes the current delivery, so it is 1 on first
    delivery.
    """

    message_id: str
    body: str
    receipt_handle: str
    receive_count: int
    sent_at: datetime
    visible_until: datetime
    attributes: dict[str, Any] = field(default_factory=dict)


class WorkQueue(ABC):
    """At-least-once message queue with visibility timeouts."""

    @abstractmethod
    def send(self, body: str, attributes: Optional[dict[str, Any]] = None) -> str:
        """Enqueue a message. Returns its message id."""
        pass

    @abstractmethod
    def receive(self, max_messages: int = 1, visibility_timeout: int = 300) -> list[ReceivedMessage]:
        """Deliver up to ``max_messages`` visible messages.

        Each delivered message is hidden for ``visibility_timeout`` seconds
        and gets a fresh receipt handle.
        """
        pass

    @abstractmethod
    def acknowledge(self, receipt_handle: str) -> bool:
        """Delete a delivered message.

        Returns:
            False if the handle is stale (the message was redelivered since)
        """
        pass

    @abstractmethod
    def release(self, receipt_handle: str, delay_seconds: int = 0) -> bool:
        """Make a delivered message visible again after ``delay_seconds``.

        Returns:
            False if the handle is stale
        """
        pass

    @abstractmethod
    def pending_count(self) -> int:
        """Return how many messages are in the queue, visible or not."""
        pass
