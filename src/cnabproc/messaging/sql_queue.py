"""Work queue stored in a relational table."""

import uuid
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cnabproc.database.mappers import as_utc
from cnabproc.database.models import QueueMessage
from cnabproc.domain.errors import ProcessingError
from cnabproc.logging_config import get_logger
from cnabproc.messaging.base import ReceivedMessage, WorkQueue
from cnabproc.utils.clock import Clock, SystemClock

logger = get_logger(__name__)


class DatabaseQueue(WorkQueue):
    """Queue backed by the ``queue_messages`` table.

    Receiving a message stamps it with a new receipt handle and pushes its
    ``visible_at`` forward; only the holder of the latest handle can
    acknowledge or release it. Every operation runs in its own short
    transaction so one instance can be shared between threads.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Optional[Clock] = None):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def _fail(self, action: str, error: SQLAlchemyError) -> ProcessingError:
        logger.warning("Queue error while %s: %s", action, error)
        return ProcessingError(f"Queue error while {action}: {type(error).__name__}")

    def send(self, body: str, attributes: Optional[dict[str, Any]] = None) -> str:
        now = self.clock.now()
        message_id = str(uuid.uuid4())
        try:
            with self.session_factory() as session, session.begin():
                session.add(
                    QueueMessage(
                        message_id=message_id,
                        body=body,
                        attributes=dict(attributes or {}),
                        sent_at=now,
                        visible_at=now,
                        receive_count=0,
                    )
                )
        except SQLAlchemyError as e:
            raise self._fail("sending a message", e) from e
        logger.debug("Enqueued message %s", message_id)
        return message_id

    def receive(self, max_messages: int = 1, visibility_timeout: int = 300) -> list[ReceivedMessage]:
        now = self.clock.now()
        visible_until = now + timedelta(seconds=visibility_timeout)
        received: list[ReceivedMessage] = []
        try:
            with self.session_factory() as session, session.begin():
                candidates = (
                    session.query(QueueMessage)
                    .filter(QueueMessage.visible_at <= now)
                    .order_by(QueueMessage.sent_at, QueueMessage.id)
                    .limit(max_messages)
                    .all()
                )
                for candidate in candidates:
                    handle = str(uuid.uuid4())
                    # Claim only if nobody received it since we read it
                    claimed = (
                        session.query(QueueMessage)
                        .filter(
                            QueueMessage.id == candidate.id,
                            QueueMessage.receive_count == candidate.receive_count,
                        )
                        .update(
                            {
                                QueueMessage.receipt_handle: handle,
                                QueueMessage.visible_at: visible_until,
                                QueueMessage.receive_count: candidate.receive_count + 1,
                            },
                            synchronize_session=False,
                        )
                    )
                    if claimed == 0:
                        continue
                    received.append(
                        ReceivedMessage(
                            message_id=candidate.message_id,
                            body=candidate.body,
                            receipt_handle=handle,
                            receive_count=candidate.receive_count + 1,
                            sent_at=as_utc(candidate.sent_at),
                            visible_until=visible_until,
                            attributes=dict(candidate.attributes or {}),
                        )
                    )
        except SQLAlchemyError as e:
            raise self._fail("receiving messages", e) from e
        return received

    def acknowledge(self, receipt_handle: str) -> bool:
        try:
            with self.session_factory() as session, session.begin():
                deleted = (
                    session.query(QueueMessage)
                    .filter(QueueMessage.receipt_handle == receipt_handle)
                    .delete(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            raise self._fail("acknowledging a message", e) from e
        if deleted == 0:
            logger.warning("Stale receipt handle %s; message was not acknowledged", receipt_handle)
        return deleted > 0

    def release(self, receipt_handle: str, delay_seconds: int = 0) -> bool:
        visible_at = self.clock.now() + timedelta(seconds=delay_seconds)
        try:
            with self.session_factory() as session, session.begin():
                updated = (
                    session.query(QueueMessage)
                    .filter(QueueMessage.receipt_handle == receipt_handle)
                    .update(
                        {QueueMessage.visible_at: visible_at, QueueMessage.receipt_handle: None},
                        synchronize_session=False,
                    )
                )
        except SQLAlchemyError as e:
            raise self._fail("releasing a message", e) from e
        if updated == 0:
            logger.warning("Stale receipt handle %s; message was not released", receipt_handle)
        return updated > 0

    def pending_count(self) -> int:
        try:
            with self.session_factory() as session:
                return session.query(func.count(QueueMessage.id)).scalar()
        except SQLAlchemyError as e:
            raise self._fail("counting messages", e) from e
