# app/routers/visitors.py
"""Visitor pass endpoints: listing, QR validation, lookup, status changes and extensions."""

import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.visitor import (
    ExtendRequest, QRValidateRequest, StatusUpdate, VisitorOut, VisitorPage, VisitorsTodayOut,
)
from app.services import visitor_service
from app.services.errors import CredentialNotFound, InvalidQRCode, InvalidStatusTransition

router = APIRouter()


def _visitor_out(visitor) -> VisitorOut:
    out = VisitorOut.model_validate(visitor)
    out.expiry_time = visitor_service.expiry_time(visitor)
    return out


@router.post("/visitors/validate-qr", summary="Validate a visitor QR pass")
def validate_qr(body: QRValidateRequest, db: Session = Depends(get_db)):
    try:
        visitor = visitor_service.validate_qr(db, body.qr_token)
    except InvalidQRCode as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": _visitor_out(visitor)}


@router.get("/visitors", response_model=VisitorPage, summary="Visitor passes, filterable")
def list_visitors(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Search matches name, document number, plate or purpose."""
    page, limit = max(page, 1), min(max(limit, 1), 200)
    visitors, total = visitor_service.list_visitors(
        db, status=status, start_date=start_date, end_date=end_date,
        search=search, page=page, limit=limit,
    )
    return {"data": [_visitor_out(v) for v in visitors], "page": page, "limit": limit,
            "total": total, "pages": math.ceil(total / limit) if total else 0}


@router.get("/visitors/today", response_model=VisitorsTodayOut, summary="Today's visitors by status")
def get_todays_visitors(db: Session = Depends(get_db)):
    summary = visitor_service.todays_summary(db)
    summary["visitors"] = [_visitor_out(v) for v in summary["visitors"]]
    return summary


@router.get("/visitors/{visitor_id}", response_model=VisitorOut)
def get_visitor(visitor_id: int, db: Session = Depends(get_db)):
    visitor = visitor_service.get_visitor(db, visitor_id)
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")
    return _visitor_out(visitor)


@router.patch("/visitors/{visitor_id}/status", response_model=VisitorOut, summary="Change pass status")
def update_visitor_status(visitor_id: int, body: StatusUpdate, db: Session = Depends(get_db)):
    """
    Approve, reject or expire a pass. in_progress and completed are set by
    POST /access/entry and /access/exit.
    """
    try:
        visitor = visitor_service.update_status(db, visitor_id, body.status, body.notes)
    except CredentialNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _visitor_out(visitor)


@router.patch("/visitors/{visitor_id}/extend", response_model=VisitorOut, summary="Extend an active pass")
def extend_visitor_pass(visitor_id: int, body: ExtendRequest, db: Session = Depends(get_db)):
    try:
        visitor = visitor_service.extend_pass(db, visitor_id, body.additional_hours)
    except CredentialNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _visitor_out(visitor)
