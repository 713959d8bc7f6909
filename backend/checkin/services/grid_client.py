import json
import logging
import os
import socket
from typing import Any, List, Optional, Tuple

import google_auth_httplib2
import httplib2
from google.auth import exceptions as google_auth_exceptions
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from starlette.concurrency import run_in_threadpool

from checkin.core.errors import (
    AuthenticationError,
    RemoteGridError,
    UnknownRemoteError,
    error_from_status,
)

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

DEFAULT_SHEET_NAME = "Sheet1"


# ==============================================================================
# A1 addressing
# ==============================================================================
def column_letter(index: int) -> str:
    """Convert a 0-based column index to its sheet letter (0 -> A, 26 -> AA)"""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = ""
    index += 1
    while index > 0:
        index -= 1
        letters = chr(ord("A") + index % 26) + letters
        index //= 26
    return letters


def sheet_name_of(range_: Optional[str]) -> str:
    """'Sheet1!A:Z' -> 'Sheet1'; a bare sheet name is returned as-is"""
    if not range_:
        return DEFAULT_SHEET_NAME
    return range_.split("!", 1)[0] if "!" in range_ else range_


def a1_cell(sheet_name: str, col_index: int, row_number: int) -> str:
    """Single-cell A1 reference; row_number is 1-based"""
    return f"{sheet_name}!{column_letter(col_index)}{row_number}"


def http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is not None:
        try:
            return int(status)
        except (TypeError, ValueError):
            return 0
    resp = getattr(exc, "resp", None)
    if resp is not None:
        try:
            return int(getattr(resp, "status", 0))
        except (TypeError, ValueError):
            return 0
    return 0


# ==============================================================================
# Google Sheets client
# ==============================================================================
class GoogleSheetsGridClient:
    """
    Thin async wrapper over ``spreadsheets.values`` get/update.

    No local state besides credentials; every call gets its own HTTP
    transport because httplib2 connections are not thread-safe.
    """

    def __init__(self, credentials, value_render_option: str = "FORMATTED_VALUE"):
        self.credentials = credentials
        self.value_render_option = value_render_option
        self._service = build(
            "sheets", "v4", credentials=credentials, cache_discovery=False
        )

    def _http(self):
        return google_auth_httplib2.AuthorizedHttp(self.credentials, http=httplib2.Http())

    async def _execute(self, request, description: str):
        try:
            return await run_in_threadpool(request.execute, http=self._http())
        except HttpError as e:
            status = http_status(e)
            logger.error(f"❌ Sheets API {description} failed ({status}): {e}")
            raise translate_http_error(status, e) from e
        except google_auth_exceptions.GoogleAuthError as e:
            logger.error(f"❌ Sheets credentials rejected during {description}: {e}")
            raise AuthenticationError() from e
        except (socket.timeout, TimeoutError, ConnectionError, httplib2.HttpLib2Error) as e:
            logger.error(f"❌ Network error during {description}: {e}")
            raise UnknownRemoteError(
                "Network error. Please check your connection and try again.",
                error_type="network",
            ) from e

    async def fetch_range(self, grid_id: str, range_: str) -> List[List[Any]]:
        """values.get -> row-major matrix (empty list when the range is blank)"""
        request = self._service.spreadsheets().values().get(
            spreadsheetId=grid_id,
            range=range_,
            valueRenderOption=self.value_render_option,
        )
        response = await self._execute(request, "values.get")
        return response.get("values", []) if isinstance(response, dict) else []

    async def update_range(self, grid_id: str, range_: str, values: List[List[Any]]) -> None:
        """values.update with RAW input"""
        request = self._service.spreadsheets().values().update(
            spreadsheetId=grid_id,
            range=range_,
            valueInputOption="RAW",
            body={"values": values},
        )
        await self._execute(request, "values.update")


def translate_http_error(status: int, exc: Exception) -> RemoteGridError:
    error = error_from_status(status)
    if isinstance(error, UnknownRemoteError):
        error.message = f"Google Sheets request failed: {exc}"
    return error


# ==============================================================================
# Credentials
# ==============================================================================
def load_credentials(raw: Optional[str], default_file: Optional[str] = None):
    """
    Resolve service-account credentials from a JSON string or a key file path.
    Returns (credentials, error_message); exactly one of them is None unless
    nothing is configured at all.
    """
    if raw and raw.strip().startswith("{"):
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            return None, f"GOOGLE_APPLICATION_CREDENTIALS is not valid JSON: {e}"
        missing = [k for k in ("type", "project_id", "private_key") if not info.get(k)]
        if missing:
            return None, (
                "GOOGLE_APPLICATION_CREDENTIALS JSON is missing required fields "
                f"({', '.join(missing)})"
            )
        try:
            creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, google_auth_exceptions.GoogleAuthError) as e:
            return None, f"Failed to parse credentials from environment variable: {e}"
        logger.info("✅ Using credentials from environment variable")
        return creds, None

    path = raw
    if not path:
        if default_file and os.path.exists(default_file):
            path = default_file
        else:
            return None, "No credentials configured and default file not found"

    path = os.path.abspath(path)
    if not os.path.exists(path):
        return None, f"Credentials file not found: {path}"
    try:
        creds = service_account.Credentials.from_service_account_file(path, scopes=SCOPES)
    except (ValueError, OSError, google_auth_exceptions.GoogleAuthError) as e:
        return None, f"Failed to load credentials file {path}: {e}"
    logger.info(f"✅ Using credentials from file: {path}")
    return creds, None


def build_grid_client(settings) -> Tuple[Optional[GoogleSheetsGridClient], Optional[str]]:
    """Build the Sheets client from settings, or (None, reason) for demo mode"""
    creds, error = load_credentials(
        settings.GOOGLE_APPLICATION_CREDENTIALS,
        settings.DEFAULT_CREDENTIALS_FILE,
    )
    if creds is None:
        logger.warning(f"⚠️ Google Sheets credentials not configured: {error}")
        return None, error
    try:
        client = GoogleSheetsGridClient(creds, settings.GRID_VALUE_RENDER_OPTION)
    except Exception as e:
        logger.error(f"❌ Failed to initialize Google Sheets client: {e}")
        return None, f"Failed to initialize Google Auth: {e}"
    logger.info("✅ Google Sheets integration enabled with write access")
    return client, None
