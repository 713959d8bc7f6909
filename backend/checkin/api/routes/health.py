from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from checkin.api.deps import get_sync_service
from checkin.schemas import SheetValidationResponse
from checkin.services.sync import AttendanceSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

SETUP_INSTRUCTIONS = [
    "1. Create a Google Cloud project and enable Sheets API",
    "2. Create a service account and download JSON key",
    "3. Set GOOGLE_APPLICATION_CREDENTIALS environment variable",
    "4. Share your Google Sheet with the service account email",
    "5. Provide Sheet ID from frontend (URL parameter or input)",
    "6. Restart the server",
]

@router.get("/health")
async def health_check(
    request: Request,
    sheet_id: Optional[str] = Query(None, alias="sheetId"),
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """Health check endpoint"""
    health = {
        "status": "ok",
        "credentialsConfigured": service.configured,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "configuration": {
            "credentials": "configured" if service.configured else "not set",
            "defaultSheetId": "configured" if service.default_sheet_id else "not set",
            "mode": "frontend-provided-sheet" if service.configured else "demo",
        },
    }

    if service.configured:
        health["message"] = "Google Sheets credentials configured"
        if sheet_id:
            validation = await service.validate_access(sheet_id)
            health["sheetValidation"] = {
                "valid": validation.valid,
                "error": validation.error,
                "errorType": validation.error_type,
                "errorCode": validation.error_code,
            }
            if not validation.valid:
                health["status"] = "degraded"
    else:
        credentials_error = getattr(request.app.state, "credentials_error", None)
        health["message"] = "Running in demo mode"
        health["details"] = {
            "reason": "Google Sheets not configured",
            "errors": [{
                "field": "GOOGLE_APPLICATION_CREDENTIALS",
                "issue": credentials_error or "Not configured",
                "fix": "Set GOOGLE_APPLICATION_CREDENTIALS to a valid file path or JSON string",
            }],
            "setupInstructions": SETUP_INSTRUCTIONS,
        }

    return health

@router.get("/sheets/validate", response_model=SheetValidationResponse, response_model_exclude_none=True)
async def validate_sheet(
    sheet_id: Optional[str] = Query(None, alias="sheetId"),
    range_: Optional[str] = Query(None, alias="range"),
    service: AttendanceSyncService = Depends(get_sync_service),
):
    """Check that the service account can read the given sheet"""
    if not sheet_id:
        return JSONResponse(
            status_code=400,
            content={"valid": False, "error": "sheetId is required"},
        )

    target_range = range_ or service.default_range
    validation = await service.validate_access(sheet_id, target_range)
    body = SheetValidationResponse(
        valid=validation.valid,
        message="Sheet access validated successfully" if validation.valid else None,
        error=validation.error,
        error_type=validation.error_type,
        sheet_id=sheet_id,
        range=target_range,
    )
    if not validation.valid:
        logger.warning(f"⚠️ Sheet validation failed for {sheet_id}: {validation.error}")
        return JSONResponse(status_code=400, content=body.model_dump(by_alias=True, exclude_none=True))
    return body
