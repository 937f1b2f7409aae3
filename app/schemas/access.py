# app/schemas/access.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional


class ValidateRequest(BaseModel):
    plate: str = Field(..., min_length=1, max_length=20)
    kind: Literal["employee", "visitor"] = "employee"
    detection_method: Literal["manual", "camera_scan", "qr_scan", "rfid"] = "manual"


class EntryRequest(BaseModel):
    plate: str = Field(..., min_length=1, max_length=20)
    detection_method: Literal["manual", "camera_scan", "qr_scan", "rfid"] = "manual"


class ExitRequest(BaseModel):
    plate: str = Field(..., min_length=1, max_length=20)


class ValidateResponse(BaseModel):
    success: bool
    data: Optional[dict] = None
    message: Optional[str] = None
    reason: Optional[str] = None
    requires_special_permit: Optional[bool] = None


class EntryUser(BaseModel):
    name: Optional[str]
    type: str


class EntryResponse(BaseModel):
    access_log_id: int
    entry_time: datetime
    user: EntryUser


class ExitResponse(BaseModel):
    entry_time: datetime
    exit_time: datetime
    duration_minutes: int


class OccupantOut(BaseModel):
    plate: str
    user_type: str
    entry_time: datetime
    user_name: Optional[str]


class OccupancyOut(BaseModel):
    total: int
    employees: int
    visitors: int
    entries: list[OccupantOut]


class AccessEventOut(BaseModel):
    id: int
    user_type: str
    user_ref: Optional[int]
    plate: str
    vehicle_type: Optional[str]
    access_type: str
    status: str
    denial_reason: Optional[str]
    access_point: Optional[str]
    access_time: datetime
    exit_time: Optional[datetime]
    is_first_thursday: bool
    detection_method: Optional[str]

    class Config:
        from_attributes = True


class AccessLogPage(BaseModel):
    data: list[AccessEventOut]
    page: int
    limit: int
    total: int
    pages: int


class DenialStatOut(BaseModel):
    reason: Optional[str]
    count: int


class AccessStatOut(BaseModel):
    date: str
    user_type: str
    status: str
    count: int
