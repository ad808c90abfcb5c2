"""SQLAlchemy models for the cnabproc database."""

from datetime import datetime, UTC
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SequentialId = BigInteger().with_variant(Integer(), "sqlite")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class File(Base):
    """Uploaded file and its processing outcome."""

    __tablename__ = "files"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    size = Column(Integer, nullable=False)
    blob_key = Column(String(512), nullable=False)
    status = Column(String(20), nullable=False, default="Uploaded")
    error_message = Column(String(1000), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    uploaded_by = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Uploaded', 'Processing', 'Processed', 'Rejected')",
            name="ck_files_status",
        ),
        Index("ix_files_status", "status"),
    )

    # Relationships
    transactions = relationship("Transaction", back_populates="file")
    attempts = relationship("FileProcessingAttempt", back_populates="file")


class Store(Base):
    """Store referenced by transactions."""

    __tablename__ = "stores"

    id = Column(SequentialId, primary_key=True, autoincrement=True)
    owner_name = Column(String(14), nullable=False)
    name = Column(String(18), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("owner_name", "name", name="uq_store_owner_name"),)

    # Relationships
    transactions = relationship("Transaction", back_populates="store")


class TransactionType(Base):
    """Transaction type lookup (codes 1-9)."""

    __tablename__ = "transaction_types"

    code = Column(Integer, primary_key=True, autoincrement=False)
    description = Column(String(50), nullable=False)
    nature = Column(String(10), nullable=False)
    sign = Column(String(1), nullable=False)

    __table_args__ = (CheckConstraint("sign IN ('+', '-')", name="ck_transaction_types_sign"),)


class Transaction(Base):
    """Transaction parsed from one CNAB line."""

    __tablename__ = "transactions"

    id = Column(SequentialId, primary_key=True, autoincrement=True)
    file_id = Column(String(36), ForeignKey("files.id"), nullable=False)
    store_id = Column(SequentialId, ForeignKey("stores.id"), nullable=False)
    type_code = Column(Integer, ForeignKey("transaction_types.code"), nullable=False)
    amount = Column(BigInteger, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    tax_id = Column(String(11), nullable=False)
    card = Column(String(12), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        Index("ix_transactions_file_id", "file_id"),
        Index("ix_transactions_store_id", "store_id"),
    )

    # Relationships
    file = relationship("File", back_populates="transactions")
    store = relationship("Store", back_populates="transactions")
    transaction_type = relationship("TransactionType")


class FileProcessingAttempt(Base):
    """Audit record of one processing try."""

    __tablename__ = "file_processing_attempts"

    id = Column(SequentialId, primary_key=True, autoincrement=True)
    file_id = Column(String(36), ForeignKey("files.id"), nullable=False)
    attempt_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    error_message = Column(String(1000), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    message_id = Column(String(64), nullable=True)
    invocation_id = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("file_id", "attempt_number", name="uq_attempt_file_number"),
    )

    # Relationships
    file = relationship("File", back_populates="attempts")


class NotificationAttempt(Base):
    """Delivery record of a processing outcome notification."""

    __tablename__ = "notification_attempts"

    id = Column(SequentialId, primary_key=True, autoincrement=True)
    file_id = Column(String(36), ForeignKey("files.id"), nullable=False)
    notification_type = Column(String(50), nullable=False)
    recipient = Column(String(500), nullable=False)
    status = Column(String(50), nullable=False)
    attempt_count = Column(Integer, nullable=False, default=1)
    last_attempt_at = Column(DateTime(timezone=True), nullable=False)
    error_message = Column(String(1000), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)


class QueueMessage(Base):
    """Message held by the database-backed work queue."""

    __tablename__ = "queue_messages"

    id = Column(SequentialId, primary_key=True, autoincrement=True)
    message_id = Column(String(36), unique=True, nullable=False)
    body = Column(Text, nullable=False)
    attributes = Column(JSON, nullable=False, default=dict)
    sent_at = Column(DateTime(timezone=True), nullable=False)
    visible_at = Column(DateTime(timezone=True), nullable=False)
    receive_count = Column(Integer, nullable=False, default=0)
    receipt_handle = Column(String(36), nullable=True)

    __table_args__ = (Index("ix_queue_messages_visible_at", "visible_at"),)


# Seed data for the transaction type lookup. Types 2, 3 and 9 decrease the
# balance; every other type increases it. Some older sources list 2, 3 and 9
# as credits; migrate_fix_transaction_type_signs.py corrects such databases.
TRANSACTION_TYPE_SEED = (
    (1, "Debit", "Income", "+"),
    (2, "Boleto", "Expense", "-"),
    (3, "Financing", "Expense", "-"),
    (4, "Credit", "Income", "+"),
    (5, "Loan Receipt", "Income", "+"),
    (6, "Sales", "Income", "+"),
    (7, "TED Receipt", "Income", "+"),
    (8, "DOC Receipt", "Income", "+"),
    (9, "Rent", "Expense", "-"),
)


def seed_transaction_types(session: Session) -> int:
    """Insert missing transaction types. Returns number of rows added."""
    existing = {code for (code,) in session.query(TransactionType.code).all()}
    added = 0
    for code, description, nature, sign in TRANSACTION_TYPE_SEED:
        if code in existing:
            continue
        session.add(TransactionType(code=code, description=description, nature=nature, sign=sign))
        added += 1
    try:
        session.commit()
    except IntegrityError:
        # Another process seeded the same rows first.
        session.rollback()
        return 0
    return added


def fix_transaction_type_signs(session: Session) -> int:
    """Rewrite lookup rows that drifted from TRANSACTION_TYPE_SEED. Returns rows changed."""
    changed = 0
    for code, description, nature, sign in TRANSACTION_TYPE_SEED:
        row = session.query(TransactionType).filter(TransactionType.code == code).first()
        if row is None:
            continue
        if (row.description, row.nature, row.sign) != (description, nature, sign):
            row.description = description
            row.nature = nature
            row.sign = sign
            changed += 1
    session.commit()
    return changed


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory with the schema in place."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"timeout": 30, "check_same_thread": False}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    with factory() as session:
        seed_transaction_types(session)
    return factory
