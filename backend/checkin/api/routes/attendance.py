from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from checkin.api.deps import get_sync_service, http_error
from checkin.core.errors import CheckInError
from checkin.schemas import (
    AttendanceSummaryResponse,
    CheckInEntryResponse,
    SyncRequest,
    SyncResponse,
)
from checkin.services.sync import AttendanceSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/attendance/summary", response_model=AttendanceSummaryResponse)
async def attendance_summary(
    sheet_id: Optional[str] = Query(None, alias="sheetId"),
    range_: Optional[str] = Query(None, alias="range"),
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """Checked-in count read from the sheet, falling back to the local cache"""
    summary = await service.summary(sheet_id, range_)
    return AttendanceSummaryResponse(
        total_checked_in=summary.total_checked_in,
        check_ins=[
            CheckInEntryResponse(id=entry.id, check_in_time=entry.check_in_time)
            for entry in summary.check_ins
        ],
    )

@router.post(
    "/attendance/sync-from-sheet",
    response_model=SyncResponse,
    response_model_exclude_none=True,
)
async def sync_from_sheet(
    payload: Optional[SyncRequest] = None,
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """Rebuild the local cache from the sheet after external edits"""
    payload = payload or SyncRequest()
    try:
        result = await service.sync_from_sheet(payload.sheet_id, payload.range)
    except CheckInError as e:
        logger.error(f"❌ Error syncing from sheet: {e}")
        raise http_error(e, "Failed to sync from sheet: ")
    return SyncResponse(message=result.message, total_checked_in=result.total_checked_in)
