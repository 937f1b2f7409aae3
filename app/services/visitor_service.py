# app/services/visitor_service.py
"""
Visitor pass rules: derived expiry, automatic expiration, QR tokens and
status transitions.

Derived values (expiry_time, is_expired, can_enter, is_inside) are computed
from stored fields on every read and are never written back, except that a
pass past its expiry is moved to status "expired".

QR token format: base64 of JSON
  {visitorId, documentNumber, plate, visitDate, expiryTime}
A token is only valid while the stored pass matches it, the pass is
approved/in_progress, and now < expiryTime.
"""

import base64
import binascii
import json
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.visitor import Visitor
from app.services.errors import (
    CredentialNotFound, InfrastructureFailure, InvalidQRCode, InvalidStatusTransition,
)
from app.services.temporal_policy import local_now
from app.utils.logger import get_logger

logger = get_logger(__name__)

VISITOR_STATUSES = ("pending", "approved", "rejected", "in_progress", "completed", "expired")
TERMINAL_STATUSES = {"rejected", "completed", "expired"}
ACTIVE_STATUSES = ("approved", "in_progress")

# Forward-only lifecycle; rejected/expired are exits reachable from any live state
ALLOWED_TRANSITIONS = {
    "pending": {"approved", "rejected", "expired"},
    "approved": {"in_progress", "rejected", "expired"},
    "in_progress": {"completed", "expired"},
    "rejected": set(),
    "completed": set(),
    "expired": set(),
}

# Only set by OccupancyLedger entry/exit, together with the matching AccessEvent
LEDGER_STATUSES = {"in_progress", "completed"}


# ── Derived fields ───────────────────────────────────────────────────────────

def expiry_time(visitor) -> Optional[datetime]:
    if visitor.visit_date is None or visitor.expected_duration_hours is None:
        return None
    return visitor.visit_date + timedelta(hours=visitor.expected_duration_hours)


def is_expired(visitor, now: datetime) -> bool:
    expiry = expiry_time(visitor)
    return expiry is not None and now > expiry


def has_started(visitor, now: datetime) -> bool:
    return visitor.visit_date is not None and visitor.visit_date <= now


def can_enter(visitor, now: datetime) -> bool:
    return (visitor.status == "approved" and visitor.entry_time is None
            and has_started(visitor, now) and not is_expired(visitor, now))


def is_inside(visitor) -> bool:
    return visitor.status == "in_progress" and visitor.entry_time is not None and visitor.exit_time is None


def apply_auto_expiry(visitor, now: datetime) -> bool:
    """Move an overdue, non-terminal pass to "expired". Returns True if changed."""
    if visitor.status in TERMINAL_STATUSES or not is_expired(visitor, now):
        return False
    logger.info(f"[Visitor] Pass {visitor.id} ({visitor.plate}) expired at {expiry_time(visitor)}")
    visitor.status = "expired"
    return True


# ── QR tokens ────────────────────────────────────────────────────────────────

def build_qr_token(visitor) -> str:
    payload = {
        "visitorId": visitor.id,
        "documentNumber": visitor.document_number,
        "plate": visitor.plate,
        "visitDate": visitor.visit_date.isoformat(),
        "expiryTime": expiry_time(visitor).isoformat(),
    }
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_qr_token(token: str) -> dict:
    try:
        payload = json.loads(base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8"))
        payload["visitDate"] = datetime.fromisoformat(payload["visitDate"])
        payload["expiryTime"] = datetime.fromisoformat(payload["expiryTime"])
        payload["visitorId"] = int(payload["visitorId"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise InvalidQRCode("QR code could not be decoded") from e
    return payload


def validate_qr(db: Session, token: str, now: Optional[datetime] = None) -> Visitor:
    """Returns the visitor a QR token admits, or raises InvalidQRCode."""
    now = now or local_now()
    payload = decode_qr_token(token)

    visitor = get_visitor(db, payload["visitorId"])
    if visitor is None or visitor.qr_token != token:
        raise InvalidQRCode("Invalid or expired QR code")
    if (visitor.document_number != payload.get("documentNumber")
            or visitor.plate != payload.get("plate")):
        raise InvalidQRCode("QR code does not match the visitor record")

    if apply_auto_expiry(visitor, now):
        _commit(db)
    if visitor.status not in ACTIVE_STATUSES:
        raise InvalidQRCode(f"Visitor pass is {visitor.status}")
    if now >= payload["expiryTime"]:
        raise InvalidQRCode("Visitor pass has expired")
    return visitor


# ── Queries / updates ────────────────────────────────────────────────────────

def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InfrastructureFailure(f"Visitor store unavailable: {e}") from e


def get_visitor(db: Session, visitor_id: int) -> Optional[Visitor]:
    try:
        return db.get(Visitor, visitor_id)
    except SQLAlchemyError as e:
        raise InfrastructureFailure(f"Visitor store unavailable: {e}") from e


def todays_summary(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or local_now()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        visitors = (
            db.query(Visitor)
            .filter(Visitor.visit_date >= start, Visitor.visit_date < start + timedelta(days=1))
            .order_by(Visitor.visit_date)
            .all()
        )
    except SQLAlchemyError as e:
        raise InfrastructureFailure(f"Visitor store unavailable: {e}") from e

    if any([apply_auto_expiry(v, now) for v in visitors]):
        _commit(db)

    summary = {status: 0 for status in VISITOR_STATUSES}
    for v in visitors:
        summary[v.status] += 1
    summary["total"] = len(visitors)
    summary["visitors"] = visitors
    return summary


def list_visitors(db: Session, status: Optional[str] = None, start_date: Optional[datetime] = None,
                  end_date: Optional[datetime] = None, search: Optional[str] = None,
                  page: int = 1, limit: int = 20, now: Optional[datetime] = None):
    """Returns (visitors, total), most recent visit first."""
    now = now or local_now()
    q = db.query(Visitor)
    if status:
        q = q.filter(Visitor.status == status)
    if start_date:
        q = q.filter(Visitor.visit_date >= start_date)
    if end_date:
        q = q.filter(Visitor.visit_date <= end_date)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Visitor.name.ilike(pattern),
            Visitor.document_number.ilike(pattern),
            Visitor.plate.ilike(pattern),
            Visitor.purpose.ilike(pattern),
        ))

    try:
        total = q.count()
        visitors = (
            q.order_by(Visitor.visit_date.desc(), Visitor.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise InfrastructureFailure(f"Visitor store unavailable: {e}") from e

    if any([apply_auto_expiry(v, now) for v in visitors]):
        _commit(db)
    return visitors, total


def update_status(db: Session, visitor_id: int, status: str, notes: Optional[str] = None,
                  now: Optional[datetime] = None) -> Visitor:
    now = now or local_now()
    if status not in VISITOR_STATUSES:
        raise InvalidStatusTransition(f"Unknown status '{status}'")

    visitor = get_visitor(db, visitor_id)
    if visitor is None:
        raise CredentialNotFound(f"Visitor {visitor_id} not found")
    apply_auto_expiry(visitor, now)

    if status != visitor.status:
        if status in LEDGER_STATUSES:
            raise InvalidStatusTransition(f"Status {status} is set by registering entry or exit at the gate")
        if status not in ALLOWED_TRANSITIONS[visitor.status]:
            raise InvalidStatusTransition(f"Cannot move visitor pass from {visitor.status} to {status}")

    visitor.status = status
    if notes:
        visitor.notes = notes
    _commit(db)
    logger.info(f"[Visitor] Pass {visitor.id} → {status}")
    return visitor


def extend_pass(db: Session, visitor_id: int, additional_hours: int,
                now: Optional[datetime] = None) -> Visitor:
    now = now or local_now()
    if additional_hours <= 0:
        raise InvalidStatusTransition("Additional hours must be a positive number")

    visitor = get_visitor(db, visitor_id)
    if visitor is None:
        raise CredentialNotFound(f"Visitor {visitor_id} not found")
    if apply_auto_expiry(visitor, now):
        _commit(db)
    if visitor.status not in ACTIVE_STATUSES:
        raise InvalidStatusTransition("Can only extend active visitor passes")

    visitor.expected_duration_hours += additional_hours
    visitor.qr_token = build_qr_token(visitor)   # token embeds the expiry time
    _commit(db)
    logger.info(f"[Visitor] Pass {visitor.id} extended by {additional_hours}h → {expiry_time(visitor)}")
    return visitor


def count_open_passes_for_day(db: Session, plate: str, day: datetime) -> int:
    """Non-terminal passes registered for ``plate`` on the calendar day of ``day``."""
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return (
        db.query(func.count(Visitor.id))
        .filter(
            Visitor.plate == plate,
            Visitor.visit_date >= start,
            Visitor.visit_date < start + timedelta(days=1),
            Visitor.status.in_(("pending", "approved", "in_progress")),
        )
        .scalar()
    )
