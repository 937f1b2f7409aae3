# app/routers/access.py
"""
Gate endpoints: validate a plate, confirm entry/exit, current occupancy,
and the access log viewer.
"""

import math
from datetime import datetime, timedelta
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.access import (
    AccessEventOut, AccessLogPage, AccessStatOut, DenialStatOut, EntryRequest, EntryResponse,
    ExitRequest, ExitResponse, OccupancyOut, ValidateRequest, ValidateResponse,
)
from app.services import access_log_service
from app.services.access_decision import AccessDecisionEngine, Denied
from app.services.directory_service import DirectoryService
from app.services.errors import AlreadyOpenSession, CredentialNotFound, NoOpenSession
from app.services.occupancy_ledger import OccupancyLedger
from app.services.plate_normalizer import canonicalize_plate
from app.services.temporal_policy import local_now
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _require_plate(raw: str) -> str:
    plate = canonicalize_plate(raw)
    if not plate:
        raise HTTPException(status_code=400, detail="License plate is required")
    return plate


@router.post("/access/validate", response_model=ValidateResponse, response_model_exclude_none=True,
             summary="Validate a plate at the gate")
async def validate_access(body: ValidateRequest, db: Session = Depends(get_db)):
    """
    Grants or denies access for an employee or visitor plate.
    Every denial is recorded in the access log. A grant does NOT register
    entry; call /access/entry once the vehicle actually passes the gate.
    """
    plate = _require_plate(body.plate)
    engine = AccessDecisionEngine(DirectoryService(db), partial(access_log_service.record_denial, db))
    decision = await engine.validate(plate, body.kind, detection_method=body.detection_method)

    if isinstance(decision, Denied):
        return ValidateResponse(
            success=False,
            message=decision.message,
            reason=decision.reason.value,
            requires_special_permit=decision.requires_special_permit or None,
        )
    return ValidateResponse(success=True, data=decision.info)


@router.post("/access/entry", response_model=EntryResponse, summary="Register a confirmed entry")
async def register_entry(body: EntryRequest, db: Session = Depends(get_db)):
    plate = _require_plate(body.plate)
    directory = DirectoryService(db)
    try:
        event = await OccupancyLedger(db, directory).entry(plate, body.detection_method)
    except CredentialNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadyOpenSession as e:
        raise HTTPException(status_code=409, detail=str(e))

    return EntryResponse(
        access_log_id=event.id,
        entry_time=event.access_time,
        user={"name": directory.display_name(event.user_type, event.user_ref), "type": event.user_type},
    )


@router.post("/access/exit", response_model=ExitResponse, summary="Register an exit")
async def register_exit(body: ExitRequest, db: Session = Depends(get_db)):
    plate = _require_plate(body.plate)
    try:
        return await OccupancyLedger(db, DirectoryService(db)).exit(plate)
    except NoOpenSession as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/access/occupancy", response_model=OccupancyOut, summary="Vehicles currently inside")
def get_occupancy(db: Session = Depends(get_db)):
    return OccupancyLedger(db, DirectoryService(db)).occupancy()


@router.get("/access/logs", response_model=AccessLogPage, summary="Access log, filterable")
def get_access_logs(
    page: int = 1,
    limit: int = 50,
    status: Optional[str] = None,
    user_type: Optional[str] = None,
    plate: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """Chronological access events, newest first."""
    page, limit = max(page, 1), min(max(limit, 1), 200)
    events, total = access_log_service.list_events(
        db, status=status, user_type=user_type,
        plate=canonicalize_plate(plate) or None,
        start_date=start_date, end_date=end_date, page=page, limit=limit,
    )
    return {"data": events, "page": page, "limit": limit, "total": total,
            "pages": math.ceil(total / limit) if total else 0}


@router.get("/access/stats/denials", response_model=list[DenialStatOut], summary="Denials by reason")
def get_denial_stats(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                     db: Session = Depends(get_db)):
    """Denial counts per reason. Defaults to the last 30 days."""
    end_date = end_date or local_now()
    start_date = start_date or end_date - timedelta(days=30)
    return access_log_service.denial_stats(db, start_date, end_date)


@router.get("/access/count/today", summary="Today's gate counters")
def get_today_counts(db: Session = Depends(get_db)):
    return access_log_service.today_counts(db)


@router.get("/access/stats", response_model=list[AccessStatOut], summary="Events per day, user type and status")
def get_access_stats(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                     db: Session = Depends(get_db)):
    """Defaults to the last 7 days."""
    end_date = end_date or local_now()
    start_date = start_date or end_date - timedelta(days=7)
    return access_log_service.access_stats(db, start_date, end_date)


@router.get("/access/history/{plate}", response_model=list[AccessEventOut], summary="Today's events for a plate")
def get_plate_history_today(plate: str, db: Session = Depends(get_db)):
    return access_log_service.plate_history_today(db, _require_plate(plate))
