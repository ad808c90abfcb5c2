"""Business-rule validation for parsed CNAB records.

Validation is pure and line-local: the result for one line never depends on
any other line.
"""

import re
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from cnabproc.domain.cnab_parser import CNABRecord
from cnabproc.domain.entities import ValidatedRecord
from cnabproc.domain.results import Err, Ok, Result

MIN_TYPE_CODE = 1
MAX_TYPE_CODE = 9
MIN_YEAR = 1900

_CARD = re.compile(r"[A-Za-z0-9*]{12}")


@dataclass(frozen=True)
class LineValidationError:
    """Business rule violated by a single line."""

    line: int
    field: str
    reason: str

    @property
    def message(self) -> str:
        return f"Line {self.line}: {self.reason}"


def _parse_date(text: str) -> Optional[date]:
    try:
        return date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except ValueError:
        return None


def _parse_time(text: str) -> Optional[time]:
    try:
        return time(int(text[0:2]), int(text[2:4]), int(text[4:6]))
    except ValueError:
        return None


class RecordValidator:
    """Validate parsed records against domain rules."""

    def __init__(self, max_year: Optional[int] = None):
        """Initialize record validator.

        Args:
            max_year: Latest accepted transaction year. None disables the
                upper bound.
        """
        self.max_year = max_year

    def validate(self, record: CNABRecord) -> Result[ValidatedRecord, LineValidationError]:
        """Validate one record.

        Checks, in order: type code 1-9, positive amount, real calendar date,
        real time of day, card characters, non-blank owner and store name.
        The first violation is returned.

        Returns:
            ``Ok(ValidatedRecord)`` or ``Err(LineValidationError)``
        """
        line = record.line_number

        if not MIN_TYPE_CODE <= record.type_code <= MAX_TYPE_CODE:
            return Err(
                LineValidationError(
                    line,
                    "type_code",
                    f"Invalid transaction type {record.type_code}. "
                    f"Must be {MIN_TYPE_CODE}-{MAX_TYPE_CODE}.",
                )
            )

        if record.amount <= 0:
            return Err(
                LineValidationError(
                    line,
                    "amount",
                    f"Amount must be positive (greater than 0 cents), found {record.amount}.",
                )
            )

        txn_date = _parse_date(record.date)
        if txn_date is None:
            return Err(
                LineValidationError(
                    line, "date", f"Invalid date '{record.date}'. Not a real calendar date."
                )
            )
        if txn_date.year < MIN_YEAR or (self.max_year is not None and txn_date.year > self.max_year):
            upper = self.max_year if self.max_year is not None else "present"
            return Err(
                LineValidationError(
                    line,
                    "date",
                    f"Transaction date {txn_date.isoformat()} is out of range ({MIN_YEAR}-{upper}).",
                )
            )

        txn_time = _parse_time(record.time)
        if txn_time is None:
            return Err(
                LineValidationError(
                    line, "time", f"Invalid time '{record.time}'. Not a real time of day."
                )
            )

        if not _CARD.fullmatch(record.card):
            return Err(
                LineValidationError(
                    line,
                    "card",
                    f"Invalid card '{record.card}'. Must be 12 letters, digits or '*'.",
                )
            )

        key = record.store_key
        if not key.owner_name:
            return Err(LineValidationError(line, "owner_name", "Store owner name is required."))
        if not key.name:
            return Err(LineValidationError(line, "store_name", "Store name is required."))

        return Ok(
            ValidatedRecord(
                store_key=key,
                type_code=record.type_code,
                amount=record.amount,
                date=txn_date,
                time=txn_time,
                tax_id=record.tax_id,
                card=record.card,
                line_number=line,
            )
        )


def validate_record(
    record: CNABRecord, max_year: Optional[int] = None
) -> Result[ValidatedRecord, LineValidationError]:
    """Validate a record with a one-off ``RecordValidator``."""
    return RecordValidator(max_year=max_year).validate(record)
