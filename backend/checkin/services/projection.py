import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from checkin.services.schema import find_status_column, find_time_column

RESERVED_KEYS = {"id", "checkedIn", "checkInTime"}


class CellKind(Enum):
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    EMPTY = "empty"


@dataclass(frozen=True)
class Cell:
    """A sheet cell normalised to one of bool / number / text / empty"""

    kind: CellKind
    value: Any = None

    @classmethod
    def of(cls, raw) -> "Cell":
        if raw is None:
            return cls(CellKind.EMPTY)
        # bool before number: True is an int in Python
        if isinstance(raw, bool):
            return cls(CellKind.BOOL, raw)
        if isinstance(raw, (int, float)):
            return cls(CellKind.NUMBER, raw)
        text = raw if isinstance(raw, str) else str(raw)
        if text == "":
            return cls(CellKind.EMPTY)
        return cls(CellKind.TEXT, text)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def is_explicit_false(self) -> bool:
        return self.kind is CellKind.BOOL and self.value is False


def cell_at(row: Sequence[Any], index: int) -> Cell:
    if index < 0 or index >= len(row):
        return Cell(CellKind.EMPTY)
    return Cell.of(row[index])


def is_checked_in(cell: Cell) -> bool:
    """
    True, 1, or text containing "checked"/"yes" or equal to "true"
    (case-insensitive) mean checked in. Everything else does not.
    """
    if cell.kind is CellKind.BOOL:
        return cell.value
    if cell.kind is CellKind.NUMBER:
        return cell.value == 1
    if cell.kind is CellKind.TEXT:
        text = cell.value.lower()
        return "checked" in text or "yes" in text or text == "true"
    return False


def normalize_header(header) -> str:
    """'  First Name ' -> 'first_name'"""
    if header is None:
        return ""
    return re.sub(r"\s+", "_", str(header).strip().lower())


@dataclass
class Attendee:
    id: int
    checked_in: bool = False
    check_in_time: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def get(self, key, default=None):
        return self.attributes.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "checkedIn": self.checked_in, "checkInTime": self.check_in_time}
        data.update(self.attributes)
        return data


def project_row(row_id: int, row: Sequence[Any], headers: Sequence[Any],
                status_col: int, time_col: int, cache=None) -> Attendee:
    attendee = Attendee(id=row_id)

    status = cell_at(row, status_col) if status_col != -1 else Cell(CellKind.EMPTY)
    if status_col != -1 and status.is_explicit_false:
        attendee.checked_in = False
        attendee.check_in_time = None
    elif status_col != -1 and not status.is_empty:
        attendee.checked_in = is_checked_in(status)
        time_cell = cell_at(row, time_col)
        if attendee.checked_in and time_col != -1 and not time_cell.is_empty:
            attendee.check_in_time = time_cell.value
    elif cache is not None and row_id in cache:
        attendee.checked_in = True
        attendee.check_in_time = cache.get(row_id)

    for index, header in enumerate(headers):
        cell = cell_at(row, index)
        if cell.is_empty:
            continue
        key = normalize_header(header)
        if key and key not in RESERVED_KEYS:
            attendee.attributes[key] = cell.value
    return attendee


def project(rows: Sequence[Sequence[Any]], cache=None, strict: bool = False) -> List[Attendee]:
    """Header row + data rows -> attendees with ids 1..n"""
    if not rows:
        return []
    headers = rows[0]
    status_col = find_status_column(headers, strict)
    time_col = find_time_column(headers, strict)
    return [
        project_row(index, row, headers, status_col, time_col, cache)
        for index, row in enumerate(rows[1:], start=1)
    ]
