"""Queue workers that feed deliveries to the processing coordinator."""

import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional

from cnabproc.config import ProcessorConfig
from cnabproc.database.base import Database
from cnabproc.domain.errors import ContractViolation, ProcessingError
from cnabproc.domain.notifications import NotificationService, Notifier
from cnabproc.domain.processing import Delivery, FileProcessingService, ProcessingOutcome
from cnabproc.logging_config import LogContext, get_logger
from cnabproc.messaging.base import ReceivedMessage, WorkQueue
from cnabproc.messaging.dead_letter import DeadLetterCode, DeadLetterEntry, DeadLetterSink
from cnabproc.messaging.messages import MalformedMessageError, WorkItem
from cnabproc.storage.base import BlobStore
from cnabproc.utils.clock import Clock
from cnabproc.utils.ids import new_correlation_id

logger = get_logger(__name__)

CORRELATION_ID_ATTRIBUTE = "correlationId"


def build_processing_service(
    db: Database,
    blob_store: BlobStore,
    dead_letters: DeadLetterSink,
    clock: Clock,
    config: ProcessorConfig,
    notifier: Optional[Notifier] = None,
) -> FileProcessingService:
    """Wire a coordinator from configuration."""
    notifications = NotificationService(
        db, clock, notifier=notifier, default_recipient=config.notification_recipient
    )
    return FileProcessingService(
        db,
        blob_store,
        dead_letters,
        clock,
        max_attempts=config.max_attempts,
        processing_timeout_seconds=config.processing_timeout_seconds,
        notifications=notifications,
    )


class Worker:
    """Pull one message at a time and settle it."""

    def __init__(
        self,
        service: FileProcessingService,
        queue: WorkQueue,
        dead_letters: DeadLetterSink,
        clock: Clock,
        visibility_timeout_seconds: int = 300,
        retry_delay_seconds: int = 0,
    ):
        self.service = service
        self.queue = queue
        self.dead_letters = dead_letters
        self.clock = clock
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self.retry_delay_seconds = retry_delay_seconds

    def run_once(self) -> bool:
        """Receive and handle at most one message.

        Returns:
            True if a message was received

        Raises:
            ContractViolation: After dead-lettering the offending message
        """
        messages = self.queue.receive(
            max_messages=1, visibility_timeout=self.visibility_timeout_seconds
        )
        if not messages:
            return False
        self.handle(messages[0])
        return True

    def handle(self, message: ReceivedMessage) -> Optional[ProcessingOutcome]:
        """Decode a message, run the coordinator and acknowledge or release it.

        Returns:
            Coordinator outcome, or None if the message never reached it
        """
        received_at = self.clock.now()
        correlation_id = message.attributes.get(CORRELATION_ID_ATTRIBUTE) or new_correlation_id()

        try:
            work_item = WorkItem.from_json(message.body)
        except MalformedMessageError as e:
            with LogContext.bind(correlation_id=correlation_id, message_id=message.message_id):
                logger.error("Malformed message %s: %s", message.message_id, e)
                self.dead_letters.send(
                    DeadLetterEntry(
                        file_id=None,
                        blob_key=None,
                        code=DeadLetterCode.MALFORMED_MESSAGE,
                        message=str(e),
                        attempts=message.receive_count,
                        received_at=received_at,
                        moved_at=self.clock.now(),
                        message_id=message.message_id,
                        body=message.body,
                    )
                )
                self.queue.acknowledge(message.receipt_handle)
            return None

        delivery = Delivery(
            work_item=work_item,
            message_id=message.message_id,
            receive_count=message.receive_count,
            visible_until=message.visible_until,
            correlation_id=correlation_id,
            invocation_id=new_correlation_id(),
            received_at=received_at,
        )

        try:
            outcome = self.service.process(delivery)
        except ContractViolation as e:
            with LogContext.bind(correlation_id=correlation_id, file_id=work_item.file_id):
                logger.critical(
                    "Contract violation while processing file %s", work_item.file_id, exc_info=True
                )
                self.service.dead_letter_delivery(
                    delivery, DeadLetterCode.CONTRACT_VIOLATION, str(e), message.receive_count
                )
                self.queue.acknowledge(message.receipt_handle)
            raise
        except Exception:
            logger.exception(
                "Unexpected error processing file %s; releasing message %s",
                work_item.file_id,
                message.message_id,
            )
            self.queue.release(message.receipt_handle, delay_seconds=self.retry_delay_seconds)
            return None

        if outcome.acknowledged:
            self.queue.acknowledge(message.receipt_handle)
        else:
            self.queue.release(message.receipt_handle, delay_seconds=self.retry_delay_seconds)
        return outcome


class WorkerPool:
    """Run several workers in threads, each with its own database session."""

    def __init__(
        self,
        config: ProcessorConfig,
        db_factory: Callable[[], Database],
        queue: WorkQueue,
        blob_store: BlobStore,
        dead_letters: DeadLetterSink,
        clock: Clock,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize worker pool.

        Args:
            config: Processor settings (worker count, timeouts, attempts)
            db_factory: Called once per worker to open its own database
            queue: Shared work queue
            blob_store: Source of uploaded file content
            dead_letters: Destination for items that will not be retried
            clock: Clock shared by every worker
            notifier: Optional notification channel
        """
        self.config = config
        self.db_factory = db_factory
        self.queue = queue
        self.blob_store = blob_store
        self.dead_letters = dead_letters
        self.clock = clock
        self.notifier = notifier
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._handled = 0

    def stop(self) -> None:
        """Ask every worker to finish its current message and exit."""
        self._stop.set()

    def run(self, drain: bool = False) -> int:
        """Run workers until stopped.

        Args:
            drain: Return once the queue holds no messages at all

        Returns:
            Number of messages handled

        Raises:
            ContractViolation: If any worker hit one; the pool stops
        """
        self._stop.clear()
        self._handled = 0
        logger.info("Starting %d workers", self.config.workers)
        executor = ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="cnabproc-worker"
        )
        futures = [executor.submit(self._work, index, drain) for index in range(self.config.workers)]
        try:
            wait(futures)
        except KeyboardInterrupt:
            logger.info("Interrupted; waiting for workers to finish their current message")
            self.stop()
            raise
        finally:
            executor.shutdown(wait=True)

        for future in futures:
            error = future.exception()
            if error is not None:
                raise error
        logger.info("Workers stopped after handling %d messages", self._handled)
        return self._handled

    def _work(self, index: int, drain: bool) -> None:
        db = self.db_factory()
        db.connect()
        try:
            service = build_processing_service(
                db, self.blob_store, self.dead_letters, self.clock, self.config, self.notifier
            )
            worker = Worker(
                service,
                self.queue,
                self.dead_letters,
                self.clock,
                visibility_timeout_seconds=self.config.visibility_timeout_seconds,
                retry_delay_seconds=self.config.retry_delay_seconds,
            )
            while not self._stop.is_set():
                try:
                    received = worker.run_once()
                except ContractViolation:
                    self._stop.set()
                    raise
                except ProcessingError as e:
                    logger.warning("Worker %d could not reach the queue: %s", index, e)
                    received = False

                if received:
                    with self._lock:
                        self._handled += 1
                    continue
                if drain and self.queue.pending_count() == 0:
                    break
                self._stop.wait(self.config.poll_interval_seconds)
        finally:
            db.disconnect()
