import asyncio

import pytest

from checkin.core.errors import GridPermissionError, RateLimitError, ServiceUnavailableError
from checkin.services.schema import (
    CheckInColumns,
    SchemaDiscovery,
    find_empty_column,
    find_status_column,
    find_time_column,
    locate_columns,
)
from tests.conftest import SHEET_ID, FakeGrid

RANGE = "Sheet1!A:Z"


def _discovery(grid, sleep, **kwargs):
    return SchemaDiscovery(grid, sleep=sleep, **kwargs)


def test_fuzzy_header_matching():
    headers = ["Name", "Checked In?", "Arrival Timestamp"]
    assert find_status_column(headers) == 1
    assert find_time_column(headers) == 2
    assert find_status_column(["Name", " ATTENDANCE "]) == 1
    assert find_status_column(["Name", "Company"]) == -1
    assert find_time_column([None, "", "Name"]) == -1


def test_fuzzy_matching_picks_first_match():
    headers = ["Name", "Lead Time", "Check-In Status", "Check-In Time"]
    assert find_time_column(headers) == 1


def test_strict_matching_prefers_exact_labels():
    headers = ["Name", "Lead Time", "Check-In Status", "Check-In Time"]
    assert find_time_column(headers, strict=True) == 3
    assert find_status_column(headers, strict=True) == 2
    # falls back to fuzzy when no exact label exists
    assert find_time_column(["Name", "Lead Time"], strict=True) == 1


def test_locate_columns_on_empty_grid():
    assert locate_columns([]) == CheckInColumns(-1, -1)


def test_empty_column_is_past_the_header():
    rows = [["Name", "Company"], ["Ana", "Acme"]]
    assert find_empty_column(rows) == 2


def test_empty_column_reuses_blank_header_without_data():
    rows = [["Name", "", "Company"], ["Ana", "", "Acme"]]
    assert find_empty_column(rows) == 1


def test_empty_column_skips_blank_header_with_data():
    rows = [["Name", "", "Company"], ["Ana", "note", "Acme"]]
    assert find_empty_column(rows) == 3


def test_empty_column_never_selects_sampled_data():
    rows = [["Name"]] + [["x"] for _ in range(12)]
    rows[5] = ["x", "", "", "stray"]
    index = find_empty_column(rows)
    sampled = rows[: min(10, len(rows))]
    assert all(index >= len(r) or r[index] in ("", None) for r in sampled)
    assert index == 1 or index >= 4
    # data beyond the header row is respected
    assert find_empty_column([["Name"], ["Ana", "extra"]]) == 2


def test_empty_column_respects_start_from():
    rows = [["Name", "Company"], ["Ana", "Acme"]]
    assert find_empty_column(rows, start_from=3) == 3


def test_ensure_returns_missing_for_empty_grid(sleep):
    grid = FakeGrid([])
    columns = asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, RANGE))
    assert columns == CheckInColumns(-1, -1)
    assert grid.updates == []


def test_ensure_creates_both_columns(sleep):
    grid = FakeGrid([["Name", "Company"], ["Ana", "Acme"]])
    columns = asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, RANGE))

    assert columns == CheckInColumns(2, 3)
    assert grid.updates == [
        ("Sheet1!C1", [["Check-In Status"]]),
        ("Sheet1!D1", [["Check-In Time"]]),
    ]
    assert grid.rows[0] == ["Name", "Company", "Check-In Status", "Check-In Time"]
    assert grid.rows[1] == ["Ana", "Acme"]


def test_ensure_is_idempotent(sleep):
    grid = FakeGrid([["Name", "Company"], ["Ana", "Acme"]])
    discovery = _discovery(grid, sleep)

    first = asyncio.run(discovery.ensure(SHEET_ID, RANGE))
    writes_after_first = len(grid.updates)
    second = asyncio.run(discovery.ensure(SHEET_ID, RANGE))

    assert first == second
    assert writes_after_first == 2
    assert len(grid.updates) == 2


def test_ensure_uses_existing_columns(sleep):
    grid = FakeGrid([["Name", "Attendance", "Timestamp"], ["Ana", "yes", "10:00"]])
    columns = asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, RANGE))
    assert columns == CheckInColumns(1, 2)
    assert grid.updates == []


def test_ensure_skips_time_column_when_logging_disabled(sleep):
    grid = FakeGrid([["Name"], ["Ana"]])
    columns = asyncio.run(_discovery(grid, sleep, time_logging_enabled=False).ensure(SHEET_ID, RANGE))
    assert columns == CheckInColumns(1, -1)
    assert grid.updates == [("Sheet1!B1", [["Check-In Status"]])]


def test_ensure_does_not_overwrite_blank_header_with_data(sleep):
    grid = FakeGrid([["Name", "", "Company"], ["Ana", "VIP", "Acme"]])
    columns = asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, RANGE))
    assert columns == CheckInColumns(3, 4)
    assert grid.rows[1] == ["Ana", "VIP", "Acme"]


def test_ensure_uses_sheet_name_from_range(sleep):
    grid = FakeGrid([["Name", "Time slot"], ["Ana", "9am"]])
    columns = asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, "Guests!A:Z"))
    assert columns == CheckInColumns(2, 1)
    assert grid.updates == [("Guests!C1", [["Check-In Status"]])]


class RacingGrid(FakeGrid):
    """Another writer creates the header just before our write fails"""

    async def update_range(self, grid_id, range_, values):
        self.updates.append((range_, values))
        if self.rows[0][-1] != "Check-In Status":
            self.rows[0].append("Check-In Status")
        raise ServiceUnavailableError()


def test_failed_creation_falls_back_to_refetch_and_match(sleep):
    grid = RacingGrid([["Name"], ["Ana"]])
    columns = asyncio.run(
        _discovery(grid, sleep, time_logging_enabled=False).ensure(SHEET_ID, RANGE)
    )
    assert columns.status == 1


def test_failed_creation_without_match_leaves_column_missing(sleep):
    grid = FakeGrid([["Name"], ["Ana"]])
    grid.update_errors = [ServiceUnavailableError()] * 3
    columns = asyncio.run(
        _discovery(grid, sleep, time_logging_enabled=False).ensure(SHEET_ID, RANGE)
    )
    assert columns == CheckInColumns(-1, -1)
    assert len(grid.updates) == 3
    assert len(sleep.delays) == 2


def test_permission_error_during_creation_is_raised(sleep):
    grid = FakeGrid([["Name"], ["Ana"]])
    grid.update_errors = [GridPermissionError()]
    with pytest.raises(GridPermissionError):
        asyncio.run(_discovery(grid, sleep).ensure(SHEET_ID, RANGE))
    assert len(grid.updates) == 1


class FlakyFetchGrid(FakeGrid):
    def __init__(self, rows, fetch_errors):
        super().__init__(rows)
        self.fetch_errors = list(fetch_errors)

    async def fetch_range(self, grid_id, range_):
        if self.fetch_errors:
            self.fetch_count += 1
            raise self.fetch_errors.pop(0)
        return await super().fetch_range(grid_id, range_)


class LockWatchingSleep:
    """Records whether any column lock is held while backing off"""

    def __init__(self):
        self.discovery = None
        self.lock_held = []

    async def __call__(self, delay):
        self.lock_held.append(any(lock.locked() for lock in self.discovery._locks.values()))


def test_lookup_backoff_does_not_hold_the_column_lock():
    grid = FlakyFetchGrid([["Name"], ["Ana"]], [RateLimitError()])
    sleep = LockWatchingSleep()
    discovery = SchemaDiscovery(grid, sleep=sleep)
    sleep.discovery = discovery

    columns = asyncio.run(discovery.ensure(SHEET_ID, RANGE))

    assert columns == CheckInColumns(1, 2)
    assert sleep.lock_held == [False]


def test_existing_columns_never_take_the_lock(sleep):
    grid = FakeGrid([["Name", "Check-In Status", "Check-In Time"], ["Ana"]])
    discovery = _discovery(grid, sleep)

    async def lookups():
        return await asyncio.gather(*(discovery.ensure(SHEET_ID, RANGE) for _ in range(5)))

    results = asyncio.run(lookups())

    assert set(results) == {CheckInColumns(1, 2)}
    assert discovery._locks == {}
    assert grid.updates == []


class YieldingGrid(FakeGrid):
    async def update_range(self, grid_id, range_, values):
        await asyncio.sleep(0)
        await super().update_range(grid_id, range_, values)


def test_columns_created_while_waiting_are_not_recreated(sleep):
    grid = YieldingGrid([["Name"], ["Ana"]])
    discovery = _discovery(grid, sleep, time_logging_enabled=False)

    async def racing_lookups():
        return await asyncio.gather(*(discovery.ensure(SHEET_ID, RANGE) for _ in range(3)))

    results = asyncio.run(racing_lookups())

    assert set(results) == {CheckInColumns(1, -1)}
    assert grid.updates == [("Sheet1!B1", [["Check-In Status"]])]


def test_unexpected_error_during_creation_rechecks_headers(sleep):
    grid = FakeGrid([["Name"], ["Ana"]])
    grid.update_errors = [OSError("Connection reset")] * 3
    columns = asyncio.run(
        _discovery(grid, sleep, time_logging_enabled=False).ensure(SHEET_ID, RANGE)
    )
    assert columns == CheckInColumns(-1, -1)
    assert len(grid.updates) == 3
    assert sleep.delays == [1.0, 2.0]
