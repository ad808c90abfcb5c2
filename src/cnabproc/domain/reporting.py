"""Read-side queries over files, stores and transactions."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from cnabproc.database.base import Database
from cnabproc.domain.balance import calculate_balance
from cnabproc.domain.entities import (
    File,
    FileProcessingAttempt,
    FileStatus,
    NotificationAttempt,
    StoreBalance,
    Transaction,
    TransactionType,
)
from cnabproc.domain.errors import NotFoundError, file_not_found, store_not_found


@dataclass(frozen=True)
class FileDetails:
    """A file with its processing history."""

    file: File
    attempts: list[FileProcessingAttempt]
    transaction_count: int
    notifications: list[NotificationAttempt]


class ReportingService:
    """Service for querying processing results."""

    def __init__(self, db: Database):
        """Initialize reporting service.

        Args:
            db: Database instance
        """
        self.db = db

    def list_files(self, status: Optional[FileStatus] = None) -> list[File]:
        """List files, newest first."""
        return self.db.list_files(status=status)

    def get_file(self, file_id: str) -> File:
        """Get a file by ID.

        Raises:
            NotFoundError: If the file does not exist
        """
        file = self.db.get_file(file_id)
        if file is None:
            raise NotFoundError(file_not_found(file_id))
        return file

    def get_file_details(self, file_id: str) -> FileDetails:
        """Get a file with its attempts, transaction count and notifications.

        Raises:
            NotFoundError: If the file does not exist
        """
        file = self.get_file(file_id)
        return FileDetails(
            file=file,
            attempts=self.db.list_processing_attempts(file_id),
            transaction_count=self.db.count_transactions_for_file(file_id),
            notifications=self.db.list_notification_attempts(file_id),
        )

    def list_store_balances(self) -> list[StoreBalance]:
        """List every store with its balance computed from its transactions."""
        by_store: dict[int, list[Transaction]] = defaultdict(list)
        for transaction in self.db.list_transactions():
            by_store[transaction.store_id].append(transaction)

        return [
            StoreBalance(
                store=store,
                balance=calculate_balance(by_store[store.id]),
                transaction_count=len(by_store[store.id]),
            )
            for store in self.db.list_stores()
        ]

    def get_store_balance(self, store_id: int) -> StoreBalance:
        """Get one store's balance.

        Raises:
            NotFoundError: If the store does not exist
        """
        store = self.db.get_store(store_id)
        if store is None:
            raise NotFoundError(store_not_found(store_id))
        transactions = self.db.list_transactions(store_id=store_id)
        return StoreBalance(
            store=store,
            balance=calculate_balance(transactions),
            transaction_count=len(transactions),
        )

    def list_transactions(
        self, store_id: Optional[int] = None, file_id: Optional[str] = None
    ) -> list[Transaction]:
        """List transactions, optionally for one store or one file.

        Raises:
            NotFoundError: If the given store or file does not exist
        """
        if store_id is not None and self.db.get_store(store_id) is None:
            raise NotFoundError(store_not_found(store_id))
        if file_id is not None and self.db.get_file(file_id) is None:
            raise NotFoundError(file_not_found(file_id))
        return self.db.list_transactions(store_id=store_id, file_id=file_id)

    def list_transaction_types(self) -> list[TransactionType]:
        """List the transaction type lookup."""
        return self.db.list_transaction_types()
