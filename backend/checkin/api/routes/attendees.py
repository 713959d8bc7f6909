from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from checkin.api.deps import get_sync_service, http_error
from checkin.core.errors import CheckInError
from checkin.schemas import CheckInRequest, CheckInResponse
from checkin.services.sync import AttendanceSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

# ==============================================================================
# 1. LIST ATTENDEES
# ==============================================================================
@router.get("/attendees")
async def list_attendees(
    sheet_id: Optional[str] = Query(None, alias="sheetId"),
    range_: Optional[str] = Query(None, alias="range"),
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """All attendees projected from the sheet (or demo data)"""
    try:
        attendees = await service.get_attendees(sheet_id, range_)
    except CheckInError as e:
        logger.error(f"❌ Error fetching attendees: {e}")
        raise http_error(e, "Failed to fetch attendees: ")
    return [a.to_dict() for a in attendees]


# ==============================================================================
# 2. SEARCH (name / company, max 20 results)
# ==============================================================================
@router.get("/attendees/search")
async def search_attendees(
    query: Optional[str] = None,
    sheet_id: Optional[str] = Query(None, alias="sheetId"),
    range_: Optional[str] = Query(None, alias="range"),
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """
    Search attendees by name or company.
    Example: ?query=acme
    """
    if not query or not query.strip():
        return []
    try:
        results = await service.search(query, sheet_id, range_)
    except CheckInError as e:
        logger.error(f"❌ Error searching attendees: {e}")
        raise http_error(e, "Failed to search attendees: ")
    return [a.to_dict() for a in results]


# ==============================================================================
# 3. CHECK IN / CHECK OUT (sheet first, cache second)
# ==============================================================================
@router.post(
    "/attendees/{attendee_id}/checkin",
    response_model=CheckInResponse,
)
async def check_in(
    attendee_id: int,
    payload: CheckInRequest,
    service: AttendanceSyncService = Depends(get_sync_service),
):
    if attendee_id < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid attendee ID")

    try:
        result = await service.set_check_in(
            attendee_id,
            payload.checked_in,
            sheet_id=payload.sheet_id,
            range_=payload.range,
        )
    except CheckInError as e:
        logger.error(f"❌ Check-in request rejected for attendee {attendee_id}: {e}")
        raise http_error(e)

    body = CheckInResponse(
        success=result.success,
        checked_in=result.checked_in,
        check_in_time=result.check_in_time,
        total_checked_in=result.total_checked_in,
        error=result.error,
        error_type=result.error_type,
        error_code=result.error_code,
        warning=result.warning,
    )
    return JSONResponse(status_code=result.http_status, content=body.to_body())
