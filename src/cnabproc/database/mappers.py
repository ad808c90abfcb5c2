"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so domain code only ever sees
frozen, fully resolved entities.
"""

from datetime import datetime, UTC
from typing import Optional

from cnabproc.domain import entities as domain
from cnabproc.database.models import (
    File as ORMFile,
    Store as ORMStore,
    TransactionType as ORMTransactionType,
    Transaction as ORMTransaction,
    FileProcessingAttempt as ORMFileProcessingAttempt,
    NotificationAttempt as ORMNotificationAttempt,
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def file_to_domain(orm_file: ORMFile) -> domain.File:
    """Convert SQLAlchemy File model to domain File entity."""
    return domain.File(
        id=orm_file.id,
        name=orm_file.name,
        size=orm_file.size,
        blob_key=orm_file.blob_key,
        status=domain.FileStatus(orm_file.status),
        error_message=orm_file.error_message,
        uploaded_at=as_utc(orm_file.uploaded_at),
        processed_at=as_utc(orm_file.processed_at),
        uploaded_by=orm_file.uploaded_by,
    )


def store_to_domain(orm_store: ORMStore) -> domain.Store:
    """Convert SQLAlchemy Store model to domain Store entity."""
    return domain.Store(
        id=orm_store.id,
        owner_name=orm_store.owner_name,
        name=orm_store.name,
        created_at=as_utc(orm_store.created_at),
        updated_at=as_utc(orm_store.updated_at),
    )


def transaction_type_to_domain(orm_type: ORMTransactionType) -> domain.TransactionType:
    """Convert SQLAlchemy TransactionType model to domain TransactionType entity."""
    return domain.TransactionType(
        code=orm_type.code,
        description=orm_type.description,
        nature=domain.Nature(orm_type.nature),
        sign=domain.Sign(orm_type.sign),
    )


def transaction_to_domain(
    orm_transaction: ORMTransaction, transaction_type: domain.TransactionType
) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity.

    The transaction type is passed in already resolved so that callers decide
    how types are loaded.
    """
    return domain.Transaction(
        id=orm_transaction.id,
        file_id=orm_transaction.file_id,
        store_id=orm_transaction.store_id,
        transaction_type=transaction_type,
        amount=orm_transaction.amount,
        date=orm_transaction.date,
        time=orm_transaction.time,
        tax_id=orm_transaction.tax_id,
        card=orm_transaction.card,
        created_at=as_utc(orm_transaction.created_at),
    )


def attempt_to_domain(orm_attempt: ORMFileProcessingAttempt) -> domain.FileProcessingAttempt:
    """Convert SQLAlchemy FileProcessingAttempt model to domain entity."""
    return domain.FileProcessingAttempt(
        id=orm_attempt.id,
        file_id=orm_attempt.file_id,
        attempt_number=orm_attempt.attempt_number,
        status=domain.AttemptStatus(orm_attempt.status),
        error_message=orm_attempt.error_message,
        started_at=as_utc(orm_attempt.started_at),
        completed_at=as_utc(orm_attempt.completed_at),
        duration_ms=orm_attempt.duration_ms,
        message_id=orm_attempt.message_id,
        invocation_id=orm_attempt.invocation_id,
    )


def notification_to_domain(orm_notification: ORMNotificationAttempt) -> domain.NotificationAttempt:
    """Convert SQLAlchemy NotificationAttempt model to domain entity."""
    return domain.NotificationAttempt(
        id=orm_notification.id,
        file_id=orm_notification.file_id,
        notification_type=orm_notification.notification_type,
        recipient=orm_notification.recipient,
        status=orm_notification.status,
        attempt_count=orm_notification.attempt_count,
        last_attempt_at=as_utc(orm_notification.last_attempt_at),
        error_message=orm_notification.error_message,
        sent_at=as_utc(orm_notification.sent_at),
    )
