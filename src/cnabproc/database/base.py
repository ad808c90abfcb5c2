"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

# Import entities directly to avoid circular import through domain services
from cnabproc.domain.entities import (
    AttemptStatus,
    File,
    FileProcessingAttempt,
    FileStatus,
    NotificationAttempt,
    PersistResult,
    Store,
    Transaction,
    TransactionType,
    ValidatedRecord,
)


class Database(ABC):
    """Abstract database interface for cnabproc."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables, seed lookups)."""
        pass

    # File operations
    @abstractmethod
    def create_file(self, file: File) -> None:
        """Insert a newly uploaded file."""
        pass

    @abstractmethod
    def get_file(self, file_id: str) -> Optional[File]:
        """Get file by ID."""
        pass

    @abstractmethod
    def list_files(self, status: Optional[FileStatus] = None) -> list[File]:
        """List files, newest first, optionally filtered by status."""
        pass

    @abstractmethod
    def update_file_status(self, file: File, expected_status: FileStatus) -> None:
        """Write the status fields of ``file``.

        The write only applies while the stored status still equals
        ``expected_status``.

        Raises:
            StaleStatusError: If another writer changed the status first
            ProcessingError: On storage failure
        """
        pass

    # Processing attempt operations
    @abstractmethod
    def count_processing_attempts(self, file_id: str) -> int:
        """Return how many processing attempts a file has recorded."""
        pass

    @abstractmethod
    def start_processing_attempt(
        self,
        file_id: str,
        attempt_number: int,
        started_at: datetime,
        message_id: Optional[str] = None,
        invocation_id: Optional[str] = None,
    ) -> FileProcessingAttempt:
        """Append an attempt row in ``Processing`` status."""
        pass

    @abstractmethod
    def complete_processing_attempt(
        self,
        attempt_id: int,
        status: AttemptStatus,
        completed_at: datetime,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Record the outcome of an attempt."""
        pass

    @abstractmethod
    def list_processing_attempts(self, file_id: str) -> list[FileProcessingAttempt]:
        """List attempts for a file in attempt order."""
        pass

    # Persistence
    @abstractmethod
    def persist_file_records(
        self,
        processed_file: File,
        records: list[ValidatedRecord],
        now: datetime,
        before_commit: Optional[Callable[[], None]] = None,
    ) -> PersistResult:
        """Persist a file's records atomically.

        In one storage transaction: upsert every referenced store keyed on
        (owner_name, name), insert every transaction, and write the
        ``Processed`` status of ``processed_file``. ``before_commit`` runs
        just before the commit and may raise to abort.

        Any failure rolls back the whole unit.

        Raises:
            ProcessingError: On storage failure (nothing was written)
        """
        pass

    @abstractmethod
    def count_transactions_for_file(self, file_id: str) -> int:
        """Return how many transactions a file has in storage."""
        pass

    # Lookup and query operations
    @abstractmethod
    def list_transaction_types(self) -> list[TransactionType]:
        """List the transaction type lookup."""
        pass

    @abstractmethod
    def get_store(self, store_id: int) -> Optional[Store]:
        """Get store by ID."""
        pass

    @abstractmethod
    def list_stores(self) -> list[Store]:
        """List stores ordered by owner and name."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        store_id: Optional[int] = None,
        file_id: Optional[str] = None,
    ) -> list[Transaction]:
        """List transactions with their types resolved.

        Args:
            store_id: Optional store filter
            file_id: Optional file filter
        """
        pass

    # Notification operations
    @abstractmethod
    def add_notification_attempt(
        self,
        file_id: str,
        notification_type: str,
        recipient: str,
        status: str,
        attempted_at: datetime,
        error_message: Optional[str] = None,
    ) -> NotificationAttempt:
        """Record a notification delivery attempt.

        Repeated attempts for the same file and notification type update the
        existing row and increment its attempt count.
        """
        pass

    @abstractmethod
    def list_notification_attempts(self, file_id: str) -> list[NotificationAttempt]:
        """List notification attempts for a file."""
        pass
