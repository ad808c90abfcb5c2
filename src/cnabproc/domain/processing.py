"""File processing coordinator.

Runs one delivered work item through fetch, parse, validate and persist, and
decides whether the delivery is acknowledged or released for redelivery.
Deliveries may repeat, so every step is safe to run again: terminal files are
acknowledged untouched and status writes are compare-and-set.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from cnabproc.database.base import Database
from cnabproc.domain.cnab_file import scan_file
from cnabproc.domain.cnab_validator import RecordValidator
from cnabproc.domain.deadline import Deadline
from cnabproc.domain.entities import AttemptStatus, File, FileProcessingAttempt, FileStatus
from cnabproc.domain.errors import (
    ContractViolation,
    DomainError,
    ProcessingError,
    StaleStatusError,
    StorageError,
    file_not_found,
    retries_exhausted,
)
from cnabproc.domain.file_status import transition
from cnabproc.domain.notifications import NotificationService
from cnabproc.domain.persistence import PersistenceOrchestrator
from cnabproc.domain.results import Err
from cnabproc.logging_config import LogContext, get_logger
from cnabproc.messaging.dead_letter import DeadLetterCode, DeadLetterEntry, DeadLetterSink
from cnabproc.messaging.messages import WorkItem
from cnabproc.storage.base import BlobStore
from cnabproc.utils.clock import Clock, elapsed_ms

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_PROCESSING_TIMEOUT_SECONDS = 240


class Disposition(str, Enum):
    """What the worker must do with the delivered message."""

    ACKNOWLEDGE = "acknowledge"
    RELEASE = "release"


@dataclass(frozen=True)
class Delivery:
    """One delivery of a work item.

    ``receive_count`` counts this delivery too. ``visible_until`` is when the
    queue will hand the message to another consumer.
    """

    work_item: WorkItem
    message_id: str
    receive_count: int
    visible_until: datetime
    correlation_id: Optional[str] = None
    invocation_id: Optional[str] = None
    received_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of handling one delivery."""

    disposition: Disposition
    status: Optional[FileStatus]
    error: Optional[str] = None
    attempt_number: Optional[int] = None
    dead_lettered: bool = False
    transactions_inserted: int = 0

    @property
    def acknowledged(self) -> bool:
        return self.disposition is Disposition.ACKNOWLEDGE


class FileProcessingService:
    """Coordinate retries and idempotency for file processing."""

    def __init__(
        self,
        db: Database,
        blob_store: BlobStore,
        dead_letters: DeadLetterSink,
        clock: Clock,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        processing_timeout_seconds: float = DEFAULT_PROCESSING_TIMEOUT_SECONDS,
        notifications: Optional[NotificationService] = None,
    ):
        """Initialize file processing service.

        Args:
            db: Database instance
            blob_store: Source of uploaded file content
            dead_letters: Destination for items that will not be retried
            clock: Clock for timestamps, durations and deadlines
            max_attempts: Processing attempts allowed per file
            processing_timeout_seconds: Time budget per delivery
            notifications: Optional outcome notifier
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.db = db
        self.blob_store = blob_store
        self.dead_letters = dead_letters
        self.clock = clock
        self.max_attempts = max_attempts
        self.processing_timeout_seconds = processing_timeout_seconds
        self.notifications = notifications
        self.persistence = PersistenceOrchestrator(db, clock)

    def process(self, delivery: Delivery) -> ProcessingOutcome:
        """Handle one delivery of a work item.

        Returns:
            Outcome telling the caller to acknowledge or release the message

        Raises:
            ContractViolation: On a programming defect; never retried
        """
        with LogContext.bind(
            correlation_id=delivery.correlation_id,
            file_id=delivery.work_item.file_id,
            message_id=delivery.message_id,
            invocation_id=delivery.invocation_id,
        ):
            return self._process(delivery)

    def _process(self, delivery: Delivery) -> ProcessingOutcome:
        file_id = delivery.work_item.file_id
        logger.info(
            "Received file %s (delivery %d of message %s)",
            file_id,
            delivery.receive_count,
            delivery.message_id,
        )

        try:
            file = self.db.get_file(file_id)
        except ProcessingError as e:
            logger.warning("Could not load file %s, releasing: %s", file_id, e)
            return ProcessingOutcome(Disposition.RELEASE, None, error=str(e))

        if file is None:
            return self._file_missing(delivery)

        if file.status.is_terminal:
            logger.info("File %s is already %s; acknowledging", file.id, file.status.value)
            return ProcessingOutcome(Disposition.ACKNOWLEDGE, file.status)

        deadline = Deadline.starting_now(
            self.clock, self.processing_timeout_seconds, not_after=delivery.visible_until
        )

        if file.status is FileStatus.UPLOADED:
            try:
                file = self._start_processing(file)
            except StaleStatusError as e:
                logger.info("File %s was claimed by another delivery: %s", file.id, e)
                return self._settled_elsewhere(file.id)
            except ProcessingError as e:
                logger.warning("Could not mark file %s as Processing, releasing: %s", file.id, e)
                return ProcessingOutcome(Disposition.RELEASE, file.status, error=str(e))

        try:
            prior_attempts = self.db.list_processing_attempts(file.id)
        except ProcessingError as e:
            logger.warning("Could not load attempts of file %s, releasing: %s", file.id, e)
            return ProcessingOutcome(Disposition.RELEASE, file.status, error=str(e))

        if len(prior_attempts) >= self.max_attempts:
            last_error = _last_error(prior_attempts)
            logger.warning(
                "File %s already used %d of %d attempts; giving up",
                file.id,
                len(prior_attempts),
                self.max_attempts,
            )
            return self._give_up(file, delivery, len(prior_attempts), last_error)

        attempt_number = len(prior_attempts) + 1
        started_at = self.clock.now()
        try:
            attempt = self.db.start_processing_attempt(
                file.id,
                attempt_number,
                started_at,
                message_id=delivery.message_id,
                invocation_id=delivery.invocation_id,
            )
        except ProcessingError as e:
            logger.warning("Could not record attempt %d of file %s: %s", attempt_number, file.id, e)
            return ProcessingOutcome(Disposition.RELEASE, file.status, error=str(e))

        logger.info("Processing file %s, attempt %d of %d", file.id, attempt_number, self.max_attempts)

        try:
            return self._run_attempt(file, attempt, delivery, deadline)
        except StaleStatusError as e:
            self._finish_attempt(attempt, AttemptStatus.FAILED, str(e))
            logger.info("File %s was settled by another delivery: %s", file.id, e)
            return self._settled_elsewhere(file.id)
        except ProcessingError as e:
            self._finish_attempt(attempt, AttemptStatus.FAILED, str(e))
            if attempt_number >= self.max_attempts:
                logger.warning(
                    "Attempt %d of file %s failed and no attempts remain: %s",
                    attempt_number,
                    file.id,
                    e,
                )
                return self._give_up(file, delivery, attempt_number, str(e))
            logger.warning(
                "Attempt %d of file %s failed, releasing for retry: %s", attempt_number, file.id, e
            )
            return ProcessingOutcome(
                Disposition.RELEASE, FileStatus.PROCESSING, error=str(e), attempt_number=attempt_number
            )
        except ContractViolation as e:
            self._finish_attempt(attempt, AttemptStatus.FAILED, f"Contract violation: {e}")
            raise

    def _run_attempt(
        self,
        file: File,
        attempt: FileProcessingAttempt,
        delivery: Delivery,
        deadline: Deadline,
    ) -> ProcessingOutcome:
        if delivery.work_item.blob_key != file.blob_key:
            logger.warning(
                "Work item blob key %s differs from stored key %s; using stored key",
                delivery.work_item.blob_key,
                file.blob_key,
            )

        deadline.check("fetching content")
        try:
            raw = self.blob_store.get(file.blob_key)
        except ProcessingError:
            raise
        except DomainError as e:
            # An unusable stored key fails the attempt like a storage error
            raise StorageError(f"Cannot fetch blob {file.blob_key!r}: {e}") from e
        logger.info("Fetched %d bytes for file %s", len(raw), file.id)

        deadline.check("validating lines")
        validator = RecordValidator(max_year=self.clock.now().year + 1)
        scan = scan_file(raw, validator)

        if not scan.is_valid:
            summary = scan.error_summary()
            rejected = self._reject(file, summary)
            self._finish_attempt(attempt, AttemptStatus.REJECTED, rejected.error_message)
            logger.warning("Rejected file %s: %s", file.id, rejected.error_message)
            self._notify(rejected)
            return ProcessingOutcome(
                Disposition.ACKNOWLEDGE,
                FileStatus.REJECTED,
                error=rejected.error_message,
                attempt_number=attempt.attempt_number,
            )

        logger.info("Validated %d lines of file %s", scan.line_count, file.id)
        processed, persisted = self.persistence.commit(file, scan.records, deadline)
        self._finish_attempt(attempt, AttemptStatus.PROCESSED)
        logger.info("Processed file %s", file.id)
        self._notify(processed)
        return ProcessingOutcome(
            Disposition.ACKNOWLEDGE,
            FileStatus.PROCESSED,
            attempt_number=attempt.attempt_number,
            transactions_inserted=persisted.transactions_inserted,
        )

    def _start_processing(self, file: File) -> File:
        result = transition(file, FileStatus.PROCESSING, self.clock)
        if isinstance(result, Err):
            raise result.error
        self.db.update_file_status(result.value, expected_status=FileStatus.UPLOADED)
        logger.info("File %s is now Processing", file.id)
        return result.value

    def _reject(self, file: File, message: Optional[str]) -> File:
        result = transition(file, FileStatus.REJECTED, self.clock, error_message=message)
        if isinstance(result, Err):
            raise result.error
        self.db.update_file_status(result.value, expected_status=FileStatus.PROCESSING)
        return result.value

    def _give_up(
        self, file: File, delivery: Delivery, attempts: int, last_error: Optional[str]
    ) -> ProcessingOutcome:
        """Reject a file whose retry budget is spent and dead-letter its work item."""
        message = retries_exhausted(attempts, last_error)
        try:
            # Dead-letter first so a failed status write still leaves a record.
            # A redelivery after such a failure finds the entry and only rejects.
            if self.dead_letters.contains(file.id, DeadLetterCode.RETRIES_EXHAUSTED):
                logger.info("File %s was already dead-lettered; rejecting only", file.id)
            else:
                self._dead_letter(delivery, DeadLetterCode.RETRIES_EXHAUSTED, message, attempts)
            rejected = self._reject(file, message)
        except StaleStatusError as e:
            logger.info("File %s was settled by another delivery: %s", file.id, e)
            return self._settled_elsewhere(file.id)
        except ProcessingError as e:
            logger.error("Could not reject file %s after %d attempts, releasing: %s", file.id, attempts, e)
            return ProcessingOutcome(Disposition.RELEASE, file.status, error=str(e))

        logger.warning("Rejected file %s: %s", file.id, rejected.error_message)
        self._notify(rejected)
        return ProcessingOutcome(
            Disposition.ACKNOWLEDGE,
            FileStatus.REJECTED,
            error=rejected.error_message,
            attempt_number=attempts,
            dead_lettered=True,
        )

    def _file_missing(self, delivery: Delivery) -> ProcessingOutcome:
        file_id = delivery.work_item.file_id
        message = file_not_found(file_id)
        if delivery.receive_count < self.max_attempts:
            logger.warning("%s; releasing for redelivery", message)
            return ProcessingOutcome(Disposition.RELEASE, None, error=message)
        try:
            self._dead_letter(
                delivery, DeadLetterCode.FILE_NOT_FOUND, message, delivery.receive_count
            )
        except ProcessingError as e:
            logger.error("Could not dead-letter work item for file %s: %s", file_id, e)
            return ProcessingOutcome(Disposition.RELEASE, None, error=message)
        return ProcessingOutcome(Disposition.ACKNOWLEDGE, None, error=message, dead_lettered=True)

    def _settled_elsewhere(self, file_id: str) -> ProcessingOutcome:
        """Outcome when another delivery changed the file's status under us."""
        try:
            current = self.db.get_file(file_id)
        except ProcessingError as e:
            return ProcessingOutcome(Disposition.RELEASE, None, error=str(e))
        if current is not None and current.status.is_terminal:
            return ProcessingOutcome(Disposition.ACKNOWLEDGE, current.status)
        status = current.status if current is not None else None
        return ProcessingOutcome(Disposition.RELEASE, status)

    def dead_letter_delivery(
        self, delivery: Delivery, code: DeadLetterCode, message: str, attempts: int = 0
    ) -> None:
        """Park a delivery in the dead-letter sink.

        Raises:
            StorageError: If the sink could not be written
        """
        self._dead_letter(delivery, code, message, attempts)

    def _dead_letter(
        self, delivery: Delivery, code: DeadLetterCode, message: str, attempts: int
    ) -> None:
        now = self.clock.now()
        self.dead_letters.send(
            DeadLetterEntry(
                file_id=delivery.work_item.file_id,
                blob_key=delivery.work_item.blob_key,
                code=code,
                message=message,
                attempts=attempts,
                received_at=delivery.received_at or now,
                moved_at=now,
                message_id=delivery.message_id,
            )
        )

    def _finish_attempt(
        self,
        attempt: FileProcessingAttempt,
        status: AttemptStatus,
        error_message: Optional[str] = None,
    ) -> None:
        completed_at = self.clock.now()
        try:
            self.db.complete_processing_attempt(
                attempt.id,
                status,
                completed_at,
                elapsed_ms(attempt.started_at, completed_at),
                error_message=error_message,
            )
        except ProcessingError as e:
            logger.warning(
                "Could not record outcome of attempt %d of file %s: %s",
                attempt.attempt_number,
                attempt.file_id,
                e,
            )

    def _notify(self, file: File) -> None:
        if self.notifications is not None:
            self.notifications.notify(file)


def _last_error(attempts: list[FileProcessingAttempt]) -> str:
    for attempt in reversed(attempts):
        if attempt.error_message:
            return attempt.error_message
    last = attempts[-1]
    if last.status is AttemptStatus.PROCESSING:
        return f"attempt {last.attempt_number} did not complete"
    return f"attempt {last.attempt_number} ended {last.status.value}"
