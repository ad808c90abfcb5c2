"""Whole-file parse and validate pass."""

from dataclasses import dataclass, field
from typing import Union

from cnabproc.domain.cnab_parser import LineParseError, parse_line, split_lines
from cnabproc.domain.cnab_validator import LineValidationError, RecordValidator
from cnabproc.domain.entities import ValidatedRecord
from cnabproc.domain.results import Err
from cnabproc.utils.text import truncate

LineError = Union[LineParseError, LineValidationError]

EMPTY_FILE_MESSAGE = "File is empty. At least one transaction line is required."


@dataclass
class FileScan:
    """Result of running the parser and validator over every line."""

    records: list[ValidatedRecord] = field(default_factory=list)
    errors: list[LineError] = field(default_factory=list)
    line_count: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors and self.line_count > 0

    def error_summary(self) -> str | None:
        """Single actionable rejection message.

        Names the first failing line and its reason; further errors are only
        counted so the message stays bounded.
        """
        if self.line_count == 0:
            return EMPTY_FILE_MESSAGE
        if not self.errors:
            return None
        first = self.errors[0]
        summary = first.message
        remaining = len(self.errors) - 1
        if remaining > 0:
            summary += f" ({remaining} more invalid line{'s' if remaining != 1 else ''})"
        return truncate(summary)


def scan_file(raw: bytes, validator: RecordValidator) -> FileScan:
    """Parse and validate every line of a file.

    All lines are checked even after a failure so the summary can report how
    many lines are invalid. No state is shared between lines.
    """
    scan = FileScan()
    for line_number, text in split_lines(raw):
        scan.line_count += 1
        parsed = parse_line(text, line_number)
        if isinstance(parsed, Err):
            scan.errors.append(parsed.error)
            continue
        validated = validator.validate(parsed.value)
        if isinstance(validated, Err):
            scan.errors.append(validated.error)
            continue
        scan.records.append(validated.value)
    return scan
