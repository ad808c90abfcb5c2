"""Persistence orchestrator: atomic write of a validated file."""

from functools import partial
from typing import Optional

from cnabproc.database.base import Database
from cnabproc.domain.deadline import Deadline
from cnabproc.domain.entities import File, FileStatus, PersistResult, ValidatedRecord
from cnabproc.domain.file_status import transition
from cnabproc.domain.results import Err
from cnabproc.logging_config import get_logger
from cnabproc.utils.clock import Clock

logger = get_logger(__name__)


class PersistenceOrchestrator:
    """Commit a file's stores, transactions and Processed status together."""

    def __init__(self, db: Database, clock: Clock):
        """Initialize persistence orchestrator.

        Args:
            db: Database instance
            clock: Clock used for timestamps
        """
        self.db = db
        self.clock = clock

    def commit(
        self,
        file: File,
        records: list[ValidatedRecord],
        deadline: Optional[Deadline] = None,
    ) -> tuple[File, PersistResult]:
        """Persist every record of ``file`` and mark it Processed.

        Stores are upserted on (owner_name, name), transactions are bulk
        inserted and the status change is written in the same storage
        transaction. Nothing is visible unless all of it is.

        Args:
            file: File currently in Processing
            records: Validated records of every line
            deadline: Checked again right before commit

        Returns:
            (processed file, counts)

        Raises:
            InvalidTransition: If ``file`` is not in Processing
            ProcessingError: On storage failure or deadline expiry (rolled back)
        """
        result = transition(file, FileStatus.PROCESSED, self.clock)
        if isinstance(result, Err):
            raise result.error
        processed = result.value

        before_commit = None
        if deadline is not None:
            deadline.check("persisting records")
            before_commit = partial(deadline.check, "commit")

        persisted = self.db.persist_file_records(
            processed, records, self.clock.now(), before_commit=before_commit
        )
        logger.info(
            "Persisted %d transactions for file %s (%d new stores)",
            persisted.transactions_inserted,
            file.id,
            persisted.stores_created,
        )
        return processed, persisted
