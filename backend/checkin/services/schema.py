"""
Schema discovery for the two check-in columns.

The status and time columns are located by fuzzy header matching and, when
missing, created at the first column that holds neither a header nor any
data in the sampled rows. Creation is resolved by re-fetching the header
row and matching again, so a column created concurrently by another
request is picked up instead of duplicated.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from checkin.core.errors import as_check_in_error
from checkin.services.grid_client import a1_cell, sheet_name_of
from checkin.services.retry import with_retry

logger = logging.getLogger(__name__)

STATUS_LABEL = "Check-In Status"
TIME_LABEL = "Check-In Time"

STATUS_KEYWORDS = ("check-in", "checked", "attendance")
TIME_KEYWORDS = ("time", "timestamp")

STATUS_EXACT_LABELS = ("check-in status", "checked in", "check-in", "attendance")
TIME_EXACT_LABELS = ("check-in time", "timestamp")

# Upper bound for the empty-column scan past the last sampled column
MAX_EXTRA_COLUMNS = 100


@dataclass(frozen=True)
class CheckInColumns:
    status: int = -1
    time: int = -1

    @property
    def resolved(self) -> bool:
        return self.status != -1


def _header_text(header) -> str:
    if header is None:
        return ""
    return str(header).strip().lower()


def _find_column(headers: Sequence[Any], keywords, exact_labels, strict: bool) -> int:
    texts = [_header_text(h) for h in headers]
    if strict:
        for label in exact_labels:
            if label in texts:
                return texts.index(label)
    for index, text in enumerate(texts):
        if text and any(keyword in text for keyword in keywords):
            return index
    return -1


def find_status_column(headers: Sequence[Any], strict: bool = False) -> int:
    """First header containing check-in/checked/attendance, or -1"""
    return _find_column(headers, STATUS_KEYWORDS, STATUS_EXACT_LABELS, strict)


def find_time_column(headers: Sequence[Any], strict: bool = False) -> int:
    """First header containing time/timestamp, or -1"""
    return _find_column(headers, TIME_KEYWORDS, TIME_EXACT_LABELS, strict)


def locate_columns(rows: Sequence[Sequence[Any]], strict: bool = False) -> CheckInColumns:
    """Read-only lookup of both columns from the header row"""
    if not rows:
        return CheckInColumns()
    headers = rows[0]
    return CheckInColumns(find_status_column(headers, strict), find_time_column(headers, strict))


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def find_empty_column(rows: Sequence[Sequence[Any]], start_from: int = 0, sample_rows: int = 10) -> int:
    """
    First column index >= start_from with a blank header and no non-empty
    cell in the first ``sample_rows`` data rows.
    """
    headers = rows[0] if rows else []
    sample = rows[1:sample_rows + 1]
    widest = max([len(headers)] + [len(row) for row in sample])

    for index in range(start_from, max(widest, start_from) + MAX_EXTRA_COLUMNS):
        if index < len(headers) and not _is_blank(headers[index]):
            continue
        has_data = any(
            index < len(row) and row[index] is not None and row[index] != ""
            for row in sample
        )
        if not has_data:
            return index
    return max(widest, start_from)


class SchemaDiscovery:
    """Ensures the status/time columns exist on a grid (idempotent)"""

    def __init__(self, grid, *, time_logging_enabled: bool = True, strict: bool = False,
                 sample_rows: int = 10, retry_attempts: int = 3, retry_base_delay: float = 1.0,
                 sleep=asyncio.sleep):
        self.grid = grid
        self.time_logging_enabled = time_logging_enabled
        self.strict = strict
        self.sample_rows = sample_rows
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    async def _retry(self, operation, description):
        return await with_retry(
            operation,
            self.retry_attempts,
            self.retry_base_delay,
            sleep=self.sleep,
            description=description,
        )

    async def _fetch(self, grid_id: str, range_: str) -> List[List[Any]]:
        return await self._retry(lambda: self.grid.fetch_range(grid_id, range_), "values.get")

    def _lock_for(self, grid_id: str, range_: str) -> asyncio.Lock:
        key = (grid_id, sheet_name_of(range_))
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _complete(self, columns: CheckInColumns) -> bool:
        return columns.status != -1 and (columns.time != -1 or not self.time_logging_enabled)

    async def ensure(self, grid_id: str, range_: str) -> CheckInColumns:
        """
        Locate the check-in columns, creating any that are missing.
        Returns CheckInColumns(-1, -1) for an empty grid.

        Lookups run without the lock; it is held only while a missing
        column is created.
        """
        rows = await self._fetch(grid_id, range_)
        if not rows:
            return CheckInColumns()
        columns = locate_columns(rows, self.strict)
        if self._complete(columns):
            return columns

        async with self._lock_for(grid_id, range_):
            # Another request may have created the columns while we waited
            rows = await self._fetch(grid_id, range_)
            if not rows:
                return CheckInColumns()

            status_col = find_status_column(rows[0], self.strict)
            time_col = find_time_column(rows[0], self.strict)

            if status_col == -1:
                rows, status_col = await self._create_column(
                    grid_id, range_, rows, STATUS_LABEL, find_status_column, start_from=0
                )

            if time_col == -1 and self.time_logging_enabled:
                start_from = status_col + 1 if status_col != -1 else 0
                rows, time_col = await self._create_column(
                    grid_id, range_, rows, TIME_LABEL, find_time_column, start_from=start_from
                )

            return CheckInColumns(status_col, time_col)

    async def _create_column(self, grid_id, range_, rows, label, finder, start_from):
        """Write ``label`` into the first empty header cell, then re-fetch and match"""
        index = find_empty_column(rows, start_from, self.sample_rows)
        target = a1_cell(sheet_name_of(range_), index, 1)

        try:
            await self._retry(
                lambda: self.grid.update_range(grid_id, target, [[label]]),
                f"create '{label}' column",
            )
            logger.info(f"✅ Created '{label}' column at {target}")
        except Exception as exc:
            # Another request may have created it first
            e = as_check_in_error(exc)
            logger.warning(f"⚠️ Creating '{label}' at {target} failed: {e}. Re-checking headers.")
            rows = await self._fetch(grid_id, range_)
            found = finder(rows[0], self.strict) if rows else -1
            if found == -1 and e.blocks_cache:
                raise
            return rows, found

        rows = await self._fetch(grid_id, range_)
        found = finder(rows[0], self.strict) if rows else -1
        if found == -1:
            logger.error(f"❌ '{label}' column not found after creating it at {target}")
        return rows, found
