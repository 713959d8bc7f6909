from fastapi import HTTPException, Request, status

from checkin.core.errors import CheckInError
from checkin.services.sync import AttendanceSyncService

def get_sync_service(request: Request) -> AttendanceSyncService:
    """Dependency for the process-wide sync service built at startup"""
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return service

def http_error(error: CheckInError, prefix: str = "") -> HTTPException:
    """Turn a sync-core error into the HTTP error the UI expects"""
    detail = f"{prefix}{error.message}" if prefix and error.http_status >= 500 else error.message
    return HTTPException(status_code=error.http_status, detail=detail)
