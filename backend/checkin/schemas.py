from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel
from typing import List, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckInRequest(CamelModel):
    checked_in: StrictBool
    sheet_id: Optional[str] = None
    range: Optional[str] = None


class SyncRequest(CamelModel):
    sheet_id: Optional[str] = None
    range: Optional[str] = None


class CheckInResponse(CamelModel):
    success: bool
    checked_in: bool
    check_in_time: Optional[str] = None
    total_checked_in: Optional[int] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_code: Optional[int] = None
    warning: Optional[str] = None

    def to_body(self) -> dict:
        """checkedIn and checkInTime are always sent; the other optional fields only when set"""
        body = self.model_dump(by_alias=True, exclude_none=True)
        body.setdefault("checkInTime", None)
        return body


class CheckInEntryResponse(CamelModel):
    id: int
    check_in_time: Optional[str] = None


class AttendanceSummaryResponse(CamelModel):
    total_checked_in: int
    check_ins: List[CheckInEntryResponse]


class SyncResponse(CamelModel):
    message: str
    total_checked_in: Optional[int] = None


class SheetValidationResponse(CamelModel):
    valid: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    sheet_id: Optional[str] = None
    range: Optional[str] = None
