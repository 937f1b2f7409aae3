# app/schemas/visitor.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional


class VisitorOut(BaseModel):
    id: int
    name: str
    document_number: str
    plate: str
    purpose: str
    destination_area: str
    status: str
    visit_date: datetime
    expected_duration_hours: int
    expiry_time: Optional[datetime] = None
    entry_time: Optional[datetime]
    exit_time: Optional[datetime]
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class VisitorsTodayOut(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    in_progress: int
    completed: int
    expired: int
    visitors: list[VisitorOut]


class QRValidateRequest(BaseModel):
    qr_token: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: Literal["pending", "approved", "rejected", "in_progress", "completed", "expired"]
    notes: Optional[str] = None


class ExtendRequest(BaseModel):
    additional_hours: int = Field(..., gt=0)


class VisitorPage(BaseModel):
    data: list[VisitorOut]
    page: int
    limit: int
    total: int
    pages: int
