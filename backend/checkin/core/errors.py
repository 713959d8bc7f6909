"""
Error taxonomy for the check-in service.

Remote failures carry the HTTP status reported by the Sheets API
(``status_code``); ``http_status`` is what our own API answers with.
"""
from typing import Optional


class CheckInError(Exception):
    """Base class for every failure surfaced by the sync core"""

    error_type = "unknown"
    default_message = "Unexpected error"
    http_status = 500
    blocks_cache = False

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


# ==============================================================================
# Remote grid errors
# ==============================================================================
class RemoteGridError(CheckInError):
    pass


class AuthenticationError(RemoteGridError):
    error_type = "authentication"
    default_message = "Authentication failed. Please check your Google Sheets credentials."
    http_status = 401
    blocks_cache = True

    def __init__(self, message=None, status_code=401):
        super().__init__(message, status_code)


class GridPermissionError(RemoteGridError):
    error_type = "permission"
    default_message = "Permission denied. Ensure the service account has Editor access to the sheet."
    http_status = 403
    blocks_cache = True

    def __init__(self, message=None, status_code=403):
        super().__init__(message, status_code)


class NotFoundError(RemoteGridError):
    error_type = "not_found"
    default_message = "Sheet not found. Please verify the Sheet ID is correct."
    http_status = 404

    def __init__(self, message=None, status_code=404):
        super().__init__(message, status_code)


class InvalidRequestError(RemoteGridError):
    error_type = "invalid_request"
    default_message = "The Sheets API rejected the request. Please verify the range."
    http_status = 400

    def __init__(self, message=None, status_code=400):
        super().__init__(message, status_code)


class RateLimitError(RemoteGridError):
    error_type = "rate_limit"
    default_message = "Rate limit exceeded. Please try again in a moment."
    http_status = 503

    def __init__(self, message=None, status_code=429):
        super().__init__(message, status_code)


class ServiceUnavailableError(RemoteGridError):
    error_type = "service_unavailable"
    default_message = "Google Sheets service temporarily unavailable. Please try again."
    http_status = 503

    def __init__(self, message=None, status_code=503):
        super().__init__(message, status_code)


class UnknownRemoteError(RemoteGridError):
    default_message = "Google Sheets request failed."

    def __init__(self, message=None, status_code=None, error_type="unknown"):
        super().__init__(message, status_code)
        self.error_type = error_type


# ==============================================================================
# Local errors
# ==============================================================================
class ColumnResolutionError(CheckInError):
    error_type = "column_resolution"
    default_message = "Could not find or create check-in status column"


class InvalidRowError(CheckInError):
    error_type = "invalid_row"
    default_message = "Invalid row index"
    http_status = 400
    blocks_cache = True


class GridNotConfiguredError(CheckInError):
    error_type = "not_configured"
    default_message = "Google Sheets integration not configured."
    http_status = 503
    blocks_cache = True


class SheetIdRequiredError(CheckInError):
    error_type = "sheet_id_required"
    default_message = (
        "Sheet ID is required. Provide sheetId or set GOOGLE_SHEET_ID environment variable."
    )
    http_status = 400
    blocks_cache = True


_STATUS_ERRORS = {
    400: InvalidRequestError,
    401: AuthenticationError,
    403: GridPermissionError,
    404: NotFoundError,
    429: RateLimitError,
    503: ServiceUnavailableError,
}


def as_check_in_error(error: BaseException) -> CheckInError:
    """Anything outside the taxonomy is reported as an unknown remote failure"""
    if isinstance(error, CheckInError):
        return error
    return UnknownRemoteError(f"Google Sheets request failed: {error}")


def error_from_status(status_code, message=None) -> RemoteGridError:
    """Map a Sheets API HTTP status to the matching error class"""
    error_class = _STATUS_ERRORS.get(status_code)
    if error_class is None:
        return UnknownRemoteError(message, status_code=status_code or None)
    return error_class(message)
