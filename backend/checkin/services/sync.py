"""
Attendance sync core.

The sheet is the system of record. Check-in writes go to the sheet first
and to the in-process cache second; the cache is rebuilt from the sheet by
``sync_from_sheet``. When a sheet write fails for a reason that is not a
credentials/permission problem, the cache is still updated so the desk can
keep working, and the caller is told the change may not be synced.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from checkin.core.errors import (
    CheckInError,
    ColumnResolutionError,
    GridNotConfiguredError,
    InvalidRowError,
    SheetIdRequiredError,
    as_check_in_error,
)
from checkin.services.cache import AttendanceCache
from checkin.services.demo import demo_attendees, is_demo_id
from checkin.services.grid_client import a1_cell, sheet_name_of
from checkin.services.projection import Attendee, cell_at, is_checked_in, project
from checkin.services.retry import with_retry
from checkin.services.schema import SchemaDiscovery, locate_columns
from checkin.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

LOCAL_ONLY_WARNING = "Check-in saved locally but may not be synced to sheet"

NAME_KEYS = ("name", "full_name", "attendee_name")
COMPANY_KEYS = ("company", "organization", "employer")


@dataclass
class CheckInResult:
    success: bool
    checked_in: bool
    check_in_time: Optional[str] = None
    total_checked_in: Optional[int] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_code: Optional[int] = None
    http_status: int = 200
    warning: Optional[str] = None
    cached_locally: bool = False


@dataclass
class CheckInEntry:
    id: int
    check_in_time: Optional[str]


@dataclass
class AttendanceSummary:
    total_checked_in: int
    check_ins: List[CheckInEntry] = field(default_factory=list)
    source: str = "sheet"


@dataclass
class SyncResult:
    message: str
    total_checked_in: Optional[int] = None


@dataclass
class SheetValidation:
    valid: bool
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_code: Optional[int] = None


def _first_text(attendee: Attendee, keys) -> str:
    for key in keys:
        value = attendee.get(key)
        if value:
            return str(value)
    return ""


class AttendanceSyncService:
    def __init__(self, grid, cache: Optional[AttendanceCache] = None, *,
                 default_sheet_id: Optional[str] = None,
                 default_range: str = "Sheet1!A:Z",
                 time_logging_enabled: bool = True,
                 strict_headers: bool = False,
                 retry_attempts: int = 3,
                 retry_base_delay: float = 1.0,
                 sample_rows: int = 10,
                 search_limit: int = 20,
                 sleep=asyncio.sleep):
        self.grid = grid
        self.cache = cache if cache is not None else AttendanceCache()
        self.default_sheet_id = default_sheet_id
        self.default_range = default_range
        self.time_logging_enabled = time_logging_enabled
        self.strict_headers = strict_headers
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.search_limit = search_limit
        self.sleep = sleep
        self.schema = SchemaDiscovery(
            grid,
            time_logging_enabled=time_logging_enabled,
            strict=strict_headers,
            sample_rows=sample_rows,
            retry_attempts=retry_attempts,
            retry_base_delay=retry_base_delay,
            sleep=sleep,
        )

    @classmethod
    def from_settings(cls, grid, settings, cache=None):
        return cls(
            grid,
            cache,
            default_sheet_id=settings.GOOGLE_SHEET_ID,
            default_range=settings.GOOGLE_SHEET_RANGE,
            time_logging_enabled=settings.time_logging_enabled,
            strict_headers=settings.STRICT_HEADER_MATCHING,
            retry_attempts=settings.RETRY_MAX_ATTEMPTS,
            retry_base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            sample_rows=settings.EMPTY_COLUMN_SAMPLE_ROWS,
            search_limit=settings.SEARCH_RESULT_LIMIT,
        )

    @property
    def configured(self) -> bool:
        return self.grid is not None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def resolve_target(self, sheet_id: Optional[str] = None,
                       range_: Optional[str] = None) -> Tuple[Optional[str], str]:
        """
        Pick the grid id and range for a request. A None grid id means demo
        mode (no credentials and no sheet id anywhere).
        """
        grid_id = sheet_id or self.default_sheet_id
        range_ = range_ or self.default_range
        if not grid_id:
            if self.grid is None:
                return None, range_
            raise SheetIdRequiredError()
        if self.grid is None:
            raise GridNotConfiguredError(
                "Google Sheets authentication not configured. Please check your credentials."
            )
        return grid_id, range_

    async def _retry(self, operation, description):
        return await with_retry(
            operation,
            self.retry_attempts,
            self.retry_base_delay,
            sleep=self.sleep,
            description=description,
        )

    async def _fetch(self, grid_id: str, range_: str):
        return await self._retry(lambda: self.grid.fetch_range(grid_id, range_), "values.get")

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def get_attendees(self, sheet_id=None, range_=None) -> List[Attendee]:
        grid_id, range_ = self.resolve_target(sheet_id, range_)
        if grid_id is None:
            return demo_attendees(self.cache)
        rows = await self._fetch(grid_id, range_)
        return project(rows, self.cache, self.strict_headers)

    async def search(self, query: Optional[str], sheet_id=None, range_=None,
                     limit: Optional[int] = None) -> List[Attendee]:
        """Case-insensitive substring match on name or company"""
        if not query or not query.strip():
            return []
        needle = query.lower()
        limit = limit or self.search_limit
        matches = []
        for attendee in await self.get_attendees(sheet_id, range_):
            name = _first_text(attendee, NAME_KEYS).lower()
            company = _first_text(attendee, COMPANY_KEYS).lower()
            if needle in name or needle in company:
                matches.append(attendee)
                if len(matches) >= limit:
                    break
        return matches

    async def count_checked_in(self, grid_id: str, range_: str) -> int:
        """Re-derive the total from the whole sheet; fall back to the cache size"""
        try:
            rows = await self._fetch(grid_id, range_)
        except Exception as e:
            logger.warning(f"⚠️ Could not fetch updated count from sheet, using cache: {e}")
            return len(self.cache)
        return sum(1 for a in project(rows, self.cache, self.strict_headers) if a.checked_in)

    def _cache_summary(self) -> AttendanceSummary:
        return AttendanceSummary(
            total_checked_in=len(self.cache),
            check_ins=[CheckInEntry(row_id, time) for row_id, time in self.cache.entries()],
            source="cache",
        )

    async def summary(self, sheet_id=None, range_=None) -> AttendanceSummary:
        try:
            grid_id, range_ = self.resolve_target(sheet_id, range_)
        except CheckInError:
            return self._cache_summary()
        if grid_id is None:
            return self._cache_summary()

        try:
            rows = await self._fetch(grid_id, range_)
        except Exception as e:
            logger.error(f"❌ Error getting attendance summary, using cache: {e}")
            return self._cache_summary()

        checked_in = [a for a in project(rows, self.cache, self.strict_headers) if a.checked_in]
        return AttendanceSummary(
            total_checked_in=len(checked_in),
            check_ins=[CheckInEntry(a.id, a.check_in_time) for a in checked_in],
        )

    async def validate_access(self, sheet_id=None, range_=None) -> SheetValidation:
        grid_id = sheet_id or self.default_sheet_id
        if self.grid is None or not grid_id:
            return SheetValidation(
                valid=False,
                error="Google Sheets not configured or sheet ID not provided",
                error_type="not_configured",
            )
        try:
            await self._fetch(grid_id, range_ or self.default_range)
        except Exception as exc:
            e = as_check_in_error(exc)
            return SheetValidation(
                valid=False, error=e.message, error_type=e.error_type, error_code=e.status_code
            )
        return SheetValidation(valid=True)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    async def set_check_in(self, row_id: int, checked_in: bool, check_in_time: Optional[str] = None,
                           sheet_id=None, range_=None, include_total: bool = True) -> CheckInResult:
        """
        Check an attendee in (or out): sheet first, cache second.

        Request-level problems (no sheet id, no credentials) raise; write
        failures come back as ``CheckInResult(success=False)``.
        """
        if checked_in:
            check_in_time = check_in_time or utc_now_iso()
        else:
            check_in_time = None

        grid_id, range_ = self.resolve_target(sheet_id, range_)
        if grid_id is None:
            return self._demo_check_in(row_id, checked_in, check_in_time)

        try:
            await self._write_check_in(grid_id, range_, row_id, checked_in, check_in_time)
        except Exception as exc:
            e = as_check_in_error(exc)
            logger.error(f"❌ Sheet update failed for attendee {row_id}: {e}")
            warning = None
            if not e.blocks_cache:
                logger.warning(f"⚠️ Sheet update failed for attendee {row_id}, but updating local cache")
                self.cache.apply(row_id, checked_in, check_in_time)
                warning = LOCAL_ONLY_WARNING
            return CheckInResult(
                success=False,
                checked_in=checked_in,
                check_in_time=check_in_time,
                error=e.message,
                error_type=e.error_type,
                error_code=e.status_code,
                http_status=e.http_status,
                warning=warning,
                cached_locally=warning is not None,
            )

        self.cache.apply(row_id, checked_in, check_in_time)
        total = await self.count_checked_in(grid_id, range_) if include_total else None
        return CheckInResult(
            success=True,
            checked_in=checked_in,
            check_in_time=check_in_time,
            total_checked_in=total,
        )

    async def _write_check_in(self, grid_id, range_, row_id, checked_in, check_in_time):
        columns = await self.schema.ensure(grid_id, range_)
        if not columns.resolved:
            raise ColumnResolutionError()

        rows = await self._fetch(grid_id, range_)
        if not rows:
            raise InvalidRowError("No data found in sheet")
        if row_id < 1 or row_id >= len(rows):
            raise InvalidRowError(
                f"Invalid row index: {row_id}. Sheet has {len(rows) - 1} data rows."
            )

        sheet_name = sheet_name_of(range_)
        # Sheet row 1 is the header, so attendee n lives on row n + 1
        status_cell = a1_cell(sheet_name, columns.status, row_id + 1)
        await self._retry(
            lambda: self.grid.update_range(grid_id, status_cell, [[checked_in]]),
            "write check-in status",
        )

        if columns.time != -1 and self.time_logging_enabled:
            time_cell = a1_cell(sheet_name, columns.time, row_id + 1)
            await self._retry(
                lambda: self.grid.update_range(grid_id, time_cell, [[check_in_time or ""]]),
                "write check-in time",
            )

        logger.info(
            f"✅ Updated sheet for row {row_id + 1}: "
            f"{'Checked In' if checked_in else 'Not Checked In'}"
        )

    def _demo_check_in(self, row_id, checked_in, check_in_time) -> CheckInResult:
        if not is_demo_id(row_id):
            return CheckInResult(
                success=False,
                checked_in=checked_in,
                check_in_time=check_in_time,
                error=f"Invalid row index: {row_id}",
                error_type=InvalidRowError.error_type,
                http_status=InvalidRowError.http_status,
            )
        self.cache.apply(row_id, checked_in, check_in_time)
        return CheckInResult(
            success=True,
            checked_in=checked_in,
            check_in_time=check_in_time,
            total_checked_in=len(self.cache),
        )

    # ------------------------------------------------------------------
    # resync
    # ------------------------------------------------------------------
    async def sync_from_sheet(self, sheet_id=None, range_=None) -> SyncResult:
        """Rebuild the cache from the sheet. Never creates columns."""
        if self.grid is None:
            raise GridNotConfiguredError("Cannot sync: Google Sheets integration is not set up")
        grid_id, range_ = self.resolve_target(sheet_id, range_)

        rows = await self._fetch(grid_id, range_)
        if not rows:
            return SyncResult("No data found in sheet")

        columns = locate_columns(rows, self.strict_headers)
        if columns.status == -1:
            return SyncResult("No check-in status column found in sheet")

        self.cache.clear()
        for row_id, row in enumerate(rows[1:], start=1):
            status = cell_at(row, columns.status)
            if status.is_explicit_false or not is_checked_in(status):
                continue
            time_cell = cell_at(row, columns.time)
            self.cache.mark(row_id, time_cell.value if not time_cell.is_empty else utc_now_iso())

        logger.info(f"✅ Synced {len(self.cache)} check-ins from Google Sheet")
        return SyncResult(
            f"Synced {len(self.cache)} check-ins from sheet",
            total_checked_in=len(self.cache),
        )
