"""Domain model entities for cnabproc.

These are pure data classes representing business concepts, independent of
database schema. Repository functions return them fully resolved, so domain
code never follows lazy relationships.
"""

from dataclasses import dataclass
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum
from typing import Optional


class FileStatus(str, Enum):
    """Lifecycle status of an uploaded file.

    The values are the exact strings used in storage and status queries.
    """

    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.PROCESSED, FileStatus.REJECTED)


class Sign(str, Enum):
    """Balance sign of a transaction type."""

    CREDIT = "+"
    DEBIT = "-"

    @property
    def multiplier(self) -> int:
        return 1 if self is Sign.CREDIT else -1


class Nature(str, Enum):
    """Business nature of a transaction type."""

    INCOME = "Income"
    EXPENSE = "Expense"


class AttemptStatus(str, Enum):
    """Outcome recorded on a processing attempt."""

    PROCESSING = "Processing"
    PROCESSED = "Processed"
    REJECTED = "Rejected"
    FAILED = "Failed"


@dataclass(frozen=True)
class File:
    """Uploaded file domain entity."""

    id: str
    name: str
    size: int
    blob_key: str
    status: FileStatus
    error_message: Optional[str]
    uploaded_at: datetime
    processed_at: Optional[datetime]
    uploaded_by: Optional[str] = None


@dataclass(frozen=True)
class Store:
    """Store domain entity, unique by (owner_name, name)."""

    id: int
    owner_name: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TransactionType:
    """Transaction type lookup entry (codes 1-9)."""

    code: int
    description: str
    nature: Nature
    sign: Sign


@dataclass(frozen=True)
class Transaction:
    """Persisted transaction with its type already resolved."""

    id: int
    file_id: str
    store_id: int
    transaction_type: TransactionType
    amount: int
    date: date
    time: time
    tax_id: str
    card: str
    created_at: datetime

    @property
    def amount_major(self) -> Decimal:
        """Amount in major units (minor units / 100)."""
        return Decimal(self.amount) / 100


@dataclass(frozen=True)
class FileProcessingAttempt:
    """Audit record of one processing try."""

    id: int
    file_id: str
    attempt_number: int
    status: AttemptStatus
    error_message: Optional[str]
    started_at: datetime
    completed_at: Optional[datetime]
    duration_ms: Optional[int]
    message_id: Optional[str]
    invocation_id: Optional[str]


@dataclass(frozen=True)
class NotificationAttempt:
    """Delivery record of a processing outcome notification."""

    id: int
    file_id: str
    notification_type: str
    recipient: str
    status: str
    attempt_count: int
    last_attempt_at: datetime
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None


@dataclass(frozen=True)
class StoreKey:
    """Natural key of a store as it appears in a file (trimmed)."""

    owner_name: str
    name: str


@dataclass(frozen=True)
class ValidatedRecord:
    """Line that passed validation, ready to be persisted as a transaction."""

    store_key: StoreKey
    type_code: int
    amount: int
    date: date
    time: time
    tax_id: str
    card: str
    line_number: int


@dataclass(frozen=True)
class PersistResult:
    """Counts produced by one atomic persistence run."""

    stores_created: int
    stores_updated: int
    transactions_inserted: int


@dataclass(frozen=True)
class StoreBalance:
    """Store with its on-demand balance in major units."""

    store: Store
    balance: Decimal
    transaction_count: int
