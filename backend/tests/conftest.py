import re

import pytest

from checkin.services.cache import AttendanceCache
from checkin.services.sync import AttendanceSyncService

SHEET_ID = "sheet-under-test"


def parse_a1(cell):
    """'C2' -> (col_index, row_index), both 0-based"""
    match = re.fullmatch(r"([A-Z]+)(\d+)", cell)
    assert match, f"unexpected A1 reference {cell!r}"
    letters, digits = match.groups()
    number = 0
    for ch in letters:
        number = number * 26 + (ord(ch) - ord("A") + 1)
    return number - 1, int(digits) - 1


class FakeGrid:
    """In-memory stand-in for the Sheets values API"""

    def __init__(self, rows=None):
        self.rows = [list(r) for r in rows or []]
        self.fetch_count = 0
        self.updates = []
        self.update_errors = []
        self.fetch_error = None
        self.fetch_error_after = 0

    async def fetch_range(self, grid_id, range_):
        self.fetch_count += 1
        if self.fetch_error is not None and self.fetch_count > self.fetch_error_after:
            raise self.fetch_error
        return [list(r) for r in self.rows]

    async def update_range(self, grid_id, range_, values):
        self.updates.append((range_, values))
        if self.update_errors:
            raise self.update_errors.pop(0)
        _, cell = range_.split("!", 1)
        col, row = parse_a1(cell)
        for r_offset, value_row in enumerate(values):
            for c_offset, value in enumerate(value_row):
                self.set(row + r_offset, col + c_offset, value)

    def set(self, row, col, value):
        while len(self.rows) <= row:
            self.rows.append([])
        target = self.rows[row]
        while len(target) <= col:
            target.append("")
        target[col] = value


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture()
def sleep():
    return RecordingSleep()


@pytest.fixture()
def make_service(sleep):
    def _make(rows=None, grid=None, **kwargs):
        grid = grid if grid is not None else FakeGrid(rows)
        kwargs.setdefault("default_sheet_id", SHEET_ID)
        kwargs.setdefault("sleep", sleep)
        return AttendanceSyncService(grid, AttendanceCache(), **kwargs)
    return _make
