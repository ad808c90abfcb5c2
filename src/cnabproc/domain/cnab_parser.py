"""Fixed-width CNAB line parser.

Each line is exactly 80 bytes wide and carries one transaction:

    ======  =======  =====  ===========================================
    Field   Columns  Width  Format
    ======  =======  =====  ===========================================
    type    1-1      1      digit
    date    2-9      8      YYYYMMDD
    amount  10-19    10     integer, minor units
    tax_id  20-30    11     digits
    card    31-42    12     alphanumeric (``*`` allowed for masked cards)
    time    43-48    6      HHMMSS
    owner   49-62    14     text, space-padded
    store   63-80    18     text, space-padded
    ======  =======  =====  ===========================================

Widths count bytes. Text fields are decoded only after slicing, so a UTF-8
name padded to its byte width fits its columns. Malformed input is an
expected outcome: ``parse_line`` returns an ``Err`` value instead of raising.
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from cnabproc.domain.entities import StoreKey
from cnabproc.domain.results import Err, Ok, Result

LINE_LENGTH = 80

_DIGITS = re.compile(rb"[0-9]+")
_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class FieldSpec:
    """One fixed-width field, using 1-based inclusive columns."""

    name: str
    start: int
    end: int
    numeric: bool = False
    label: str = ""

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def slice(self, line: bytes) -> bytes:
        return line[self.start - 1 : self.end]


LAYOUT: tuple[FieldSpec, ...] = (
    FieldSpec("type_code", 1, 1, numeric=True, label="transaction type"),
    FieldSpec("date", 2, 9, numeric=True, label="date"),
    FieldSpec("amount", 10, 19, numeric=True, label="amount"),
    FieldSpec("tax_id", 20, 30, numeric=True, label="tax id"),
    FieldSpec("card", 31, 42, label="card"),
    FieldSpec("time", 43, 48, numeric=True, label="time"),
    FieldSpec("owner_name", 49, 62, label="store owner"),
    FieldSpec("store_name", 63, 80, label="store name"),
)

FIELDS: dict[str, FieldSpec] = {spec.name: spec for spec in LAYOUT}


@dataclass(frozen=True)
class CNABRecord:
    """Typed fields of one parsed line.

    Text fields keep their padding exactly as found in the file. Date and
    time stay as digit strings here; the validator decides whether they name
    a real calendar date and time of day.
    """

    line_number: int
    type_code: int
    date: str
    amount: int
    tax_id: str
    card: str
    time: str
    owner_name: str
    store_name: str

    @property
    def store_key(self) -> StoreKey:
        """Trimmed (owner, store) pair identifying the store."""
        return StoreKey(owner_name=self.owner_name.strip(), name=self.store_name.strip())


@dataclass(frozen=True)
class LineParseError:
    """Structural problem found while slicing a line."""

    line: int
    reason: str
    field: Optional[str] = None

    @property
    def message(self) -> str:
        if self.line <= 0:
            return self.reason
        return f"Line {self.line}: {self.reason}"


def parse_line(line: bytes | str, line_number: int) -> Result[CNABRecord, LineParseError]:
    """Parse one fixed-width line.

    Args:
        line: Line bytes without their terminator; text is encoded as UTF-8
        line_number: 1-based position of the line in the file

    Returns:
        ``Ok(CNABRecord)`` or ``Err(LineParseError)``
    """
    if isinstance(line, str):
        line = line.encode("utf-8")

    if len(line) != LINE_LENGTH:
        return Err(
            LineParseError(
                line=line_number,
                reason=f"Invalid length {len(line)}. Expected {LINE_LENGTH} characters.",
            )
        )

    values = {spec.name: spec.slice(line) for spec in LAYOUT}

    for spec in LAYOUT:
        if spec.numeric and not _DIGITS.fullmatch(values[spec.name]):
            found = decode_content(values[spec.name])
            return Err(
                LineParseError(
                    line=line_number,
                    field=spec.name,
                    reason=(
                        f"Invalid {spec.label} '{found}'. "
                        f"Expected {spec.width} digit{'s' if spec.width != 1 else ''}."
                    ),
                )
            )

    return Ok(
        CNABRecord(
            line_number=line_number,
            type_code=int(values["type_code"]),
            date=values["date"].decode("ascii"),
            amount=int(values["amount"]),
            tax_id=values["tax_id"].decode("ascii"),
            card=decode_content(values["card"]),
            time=values["time"].decode("ascii"),
            owner_name=decode_content(values["owner_name"]),
            store_name=decode_content(values["store_name"]),
        )
    )


def _pad(text: str, width: int) -> bytes:
    data = text.encode("utf-8")
    return data + b" " * (width - len(data))


def encode_record(record: CNABRecord) -> bytes:
    """Render a record back into its fixed-width line bytes."""
    parts = {
        "type_code": str(record.type_code).encode("ascii"),
        "date": record.date.encode("ascii"),
        "amount": str(record.amount).zfill(FIELDS["amount"].width).encode("ascii"),
        "tax_id": record.tax_id.encode("ascii"),
        "card": record.card.encode("utf-8"),
        "time": record.time.encode("ascii"),
        "owner_name": _pad(record.owner_name, FIELDS["owner_name"].width),
        "store_name": _pad(record.store_name, FIELDS["store_name"].width),
    }
    for spec in LAYOUT:
        if len(parts[spec.name]) != spec.width:
            raise ValueError(
                f"Field {spec.name} has width {len(parts[spec.name])}, expected {spec.width}"
            )
    return b"".join(parts[spec.name] for spec in LAYOUT)


def decode_content(raw: bytes) -> str:
    """Decode field bytes, preferring UTF-8 and falling back to Latin-1."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    return text.lstrip("\ufeff")


def split_lines(raw: bytes) -> Iterator[tuple[int, bytes]]:
    """Yield ``(line_number, line)`` for every line of a file.

    Lines stay undecoded so widths are measured in bytes. A leading byte
    order mark and carriage returns are dropped, and a single trailing
    newline does not produce an extra empty line.
    """
    if raw.startswith(_BOM):
        raw = raw[len(_BOM) :]
    lines = raw.split(b"\n")
    if lines and lines[-1] == b"":
        lines.pop()
    for index, line in enumerate(lines, start=1):
        yield index, line.rstrip(b"\r")
