# app/services/occupancy_ledger.py
"""
Occupancy ledger: confirmed gate entries and exits.

Each successful entry appends an AccessEvent (access_type=entry); the matching
exit only sets that event's exit_time. A plate can have at most one open
session (entry without exit):
  - within one process, entry/exit for a plate run under a per-plate asyncio lock
  - across processes, the partial unique index uq_access_events_open_session
    rejects a second open entry, reported as AlreadyOpenSession
"""

import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.access_event import AccessEvent
from app.services.errors import (
    AlreadyOpenSession, CredentialNotFound, InfrastructureFailure, NoOpenSession,
)
from app.services.plate_normalizer import canonicalize_plate
from app.services.temporal_policy import is_restricted_day, local_now
from app.services.visitor_service import apply_auto_expiry
from app.utils.logger import get_logger

logger = get_logger(__name__)

DETECTION_METHODS = ("manual", "camera_scan", "qr_scan", "rfid")


class PlateLockRegistry:
    """One asyncio.Lock per plate, dropped again once nobody holds or awaits it."""

    def __init__(self):
        self._locks = {}
        self._users = {}

    @asynccontextmanager
    async def hold(self, plate: str):
        lock = self._locks.setdefault(plate, asyncio.Lock())
        self._users[plate] = self._users.get(plate, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[plate] -= 1
            if not self._users[plate]:
                del self._users[plate]
                del self._locks[plate]

    def __len__(self):
        return len(self._locks)


plate_locks = PlateLockRegistry()


def duration_minutes(entry_time: datetime, exit_time: Optional[datetime]) -> Optional[int]:
    """Whole minutes between entry and exit, halves rounded up."""
    if exit_time is None:
        return None
    return int(math.floor((exit_time - entry_time).total_seconds() / 60 + 0.5))


class OccupancyLedger:
    def __init__(self, db: Session, directory, locks: Optional[PlateLockRegistry] = None):
        self.db = db
        self.directory = directory
        self.locks = locks if locks is not None else plate_locks

    def _commit(self, plate: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"[Ledger] Concurrent entry rejected for {plate}")
            raise AlreadyOpenSession(f"Vehicle {plate} is already inside") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[Ledger] Write failed for {plate}: {e}", exc_info=True)
            raise InfrastructureFailure(f"Access ledger unavailable: {e}") from e

    def open_session(self, plate: str) -> Optional[AccessEvent]:
        try:
            return (
                self.db.query(AccessEvent)
                .filter(
                    AccessEvent.plate == plate,
                    AccessEvent.access_type == "entry",
                    AccessEvent.status == "successful",
                    AccessEvent.exit_time.is_(None),
                )
                .order_by(AccessEvent.access_time.desc())
                .first()
            )
        except SQLAlchemyError as e:
            raise InfrastructureFailure(f"Access ledger unavailable: {e}") from e

    async def entry(self, plate: str, detection_method: str = "manual",
                    now: Optional[datetime] = None) -> AccessEvent:
        if detection_method not in DETECTION_METHODS:
            raise ValueError(f"Unknown detection method '{detection_method}'")
        plate = canonicalize_plate(plate)
        now = now or local_now()

        async with self.locks.hold(plate):
            employee = self.directory.find_active_employee_by_plate(plate)
            visitor = None
            if employee is None:
                visitor = self.directory.find_active_visitor_by_plate(plate, now)
                if visitor is not None and apply_auto_expiry(visitor, now):
                    self._commit(plate)
                    raise CredentialNotFound(f"Visitor pass for {plate} has expired")
            if employee is None and visitor is None:
                raise CredentialNotFound(f"No valid registration found for {plate}")

            if self.open_session(plate) is not None:
                raise AlreadyOpenSession(f"Vehicle {plate} is already inside")

            vehicle = employee.vehicle_for_plate(plate) if employee else None
            event = AccessEvent(
                user_type="employee" if employee else "visitor",
                user_ref=employee.id if employee else visitor.id,
                plate=plate,
                vehicle_type=vehicle.vehicle_type if vehicle else "unknown",
                access_type="entry",
                status="successful",
                access_time=now,
                is_first_thursday=is_restricted_day(now),
                detection_method=detection_method,
            )
            self.db.add(event)

            if visitor is not None:
                visitor.status = "in_progress"
                visitor.entry_time = now
            else:
                self.directory.touch_last_access(employee, now)

            self._commit(plate)

        logger.info(f"[Ledger] ENTRY plate={plate} type={event.user_type} via={detection_method}")
        return event

    async def exit(self, plate: str, now: Optional[datetime] = None) -> dict:
        plate = canonicalize_plate(plate)
        now = now or local_now()

        async with self.locks.hold(plate):
            event = self.open_session(plate)
            if event is None:
                raise NoOpenSession(f"No active entry found for {plate}")

            event.exit_time = now
            if event.user_type == "visitor" and event.user_ref is not None:
                visitor = self.directory.get_visitor(event.user_ref)
                if visitor is not None:
                    visitor.status = "completed"
                    visitor.exit_time = now

            self._commit(plate)

        minutes = duration_minutes(event.access_time, event.exit_time)
        logger.info(f"[Ledger] EXIT plate={plate} after {minutes} min")
        return {"entry_time": event.access_time, "exit_time": event.exit_time, "duration_minutes": minutes}

    def occupancy(self) -> dict:
        try:
            inside = (
                self.db.query(AccessEvent)
                .filter(
                    AccessEvent.access_type == "entry",
                    AccessEvent.status == "successful",
                    AccessEvent.exit_time.is_(None),
                )
                .order_by(AccessEvent.access_time)
                .all()
            )
        except SQLAlchemyError as e:
            raise InfrastructureFailure(f"Access ledger unavailable: {e}") from e

        return {
            "total": len(inside),
            "employees": sum(1 for e in inside if e.user_type == "employee"),
            "visitors": sum(1 for e in inside if e.user_type == "visitor"),
            "entries": [
                {
                    "plate": e.plate,
                    "user_type": e.user_type,
                    "entry_time": e.access_time,
                    "user_name": self.directory.display_name(e.user_type, e.user_ref),
                }
                for e in inside
            ],
        }
