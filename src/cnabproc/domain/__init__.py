"""Domain layer for cnabproc.

Services are imported from their own modules; this package only exposes the
entity and result types so the database layer can import them without cycles.
"""

from cnabproc.domain.entities import File, FileStatus, Store, Transaction, TransactionType
from cnabproc.domain.results import Err, Ok, Result

__all__ = ["Err", "File", "FileStatus", "Ok", "Result", "Store", "Transaction", "TransactionType"]
