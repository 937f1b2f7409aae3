# app/services/access_log_service.py
"""
Access event audit trail: denial recording plus the read-side queries
(filtered log, per-plate history, denial and daily statistics, today's counters).
Storage errors on any of them surface as InfrastructureFailure.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.access_event import AccessEvent
from app.services.errors import InfrastructureFailure
from app.services.temporal_policy import local_now
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _fail(db: Session, e: Exception):
    db.rollback()
    logger.error(f"[Audit] Access log query failed: {e}", exc_info=True)
    raise InfrastructureFailure(f"Access log unavailable: {e}") from e


def _day_bounds(now: datetime):
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def record_denial(db: Session, decision, plate: str, now: datetime,
                        detection_method: str = "manual") -> AccessEvent:
    """Append exactly one denied AccessEvent for ``decision``. Always commits immediately."""
    event = AccessEvent(
        user_type=decision.user_type,
        user_ref=decision.user_ref,
        plate=plate,
        vehicle_type=decision.vehicle_type,
        access_type="denied",
        status="denied",
        denial_reason=decision.reason.value,
        access_time=now,
        is_first_thursday=decision.is_first_thursday,
        detection_method=detection_method,
    )
    try:
        db.add(event)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[Audit] Could not record denial for {plate}: {e}", exc_info=True)
        raise InfrastructureFailure(f"Access log unavailable: {e}") from e
    return event


def list_events(db: Session, status: Optional[str] = None, user_type: Optional[str] = None,
                plate: Optional[str] = None, start_date: Optional[datetime] = None,
                end_date: Optional[datetime] = None, page: int = 1, limit: int = 50):
    """Returns (events, total) newest first."""
    try:
        q = db.query(AccessEvent)
        if status:
            q = q.filter(AccessEvent.status == status)
        if user_type:
            q = q.filter(AccessEvent.user_type == user_type)
        if plate:
            q = q.filter(AccessEvent.plate == plate)
        if start_date:
            q = q.filter(AccessEvent.access_time >= start_date)
        if end_date:
            q = q.filter(AccessEvent.access_time <= end_date)

        total = q.count()
        events = (
            q.order_by(AccessEvent.access_time.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, e)
    return events, total


def plate_history_today(db: Session, plate: str, now: Optional[datetime] = None) -> list:
    """Every event recorded for ``plate`` today, newest first."""
    start, end = _day_bounds(now or local_now())
    try:
        return (
            db.query(AccessEvent)
            .filter(AccessEvent.plate == plate,
                    AccessEvent.access_time >= start, AccessEvent.access_time < end)
            .order_by(AccessEvent.access_time.desc())
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, e)


def denial_stats(db: Session, start_date: datetime, end_date: datetime) -> list:
    try:
        rows = (
            db.query(AccessEvent.denial_reason, func.count(AccessEvent.id))
            .filter(
                AccessEvent.status == "denied",
                AccessEvent.access_time >= start_date,
                AccessEvent.access_time <= end_date,
            )
            .group_by(AccessEvent.denial_reason)
            .order_by(func.count(AccessEvent.id).desc())
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, e)
    return [{"reason": reason, "count": count} for reason, count in rows]


def access_stats(db: Session, start_date: datetime, end_date: datetime) -> list:
    """Event counts per calendar day, user type and status, oldest day first."""
    day = func.date(AccessEvent.access_time)
    try:
        rows = (
            db.query(day, AccessEvent.user_type, AccessEvent.status, func.count(AccessEvent.id))
            .filter(AccessEvent.access_time >= start_date, AccessEvent.access_time <= end_date)
            .group_by(day, AccessEvent.user_type, AccessEvent.status)
            .order_by(day, AccessEvent.user_type, AccessEvent.status)
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, e)
    # func.date gives a date on PostgreSQL and an ISO string on SQLite
    return [{"date": str(d), "user_type": user_type, "status": status, "count": count}
            for d, user_type, status, count in rows]


def today_counts(db: Session, now: Optional[datetime] = None) -> dict:
    start, end = _day_bounds(now or local_now())

    try:
        entries = db.query(func.count(AccessEvent.id)).filter(
            AccessEvent.access_type == "entry",
            AccessEvent.status == "successful",
            AccessEvent.access_time >= start, AccessEvent.access_time < end,
        ).scalar()
        exits = db.query(func.count(AccessEvent.id)).filter(
            AccessEvent.exit_time >= start, AccessEvent.exit_time < end,
        ).scalar()
        denied = db.query(func.count(AccessEvent.id)).filter(
            AccessEvent.access_type == "denied",
            AccessEvent.access_time >= start, AccessEvent.access_time < end,
        ).scalar()
        inside = db.query(func.count(AccessEvent.id)).filter(
            AccessEvent.access_type == "entry",
            AccessEvent.status == "successful",
            AccessEvent.exit_time.is_(None),
        ).scalar()
    except SQLAlchemyError as e:
        _fail(db, e)
    return {"date": str(start.date()), "entries": entries, "exits": exits,
            "denied": denied, "currently_inside": inside}
