# app/services/directory_service.py
"""
Credential directory: resolves plates and document numbers to employee or
visitor records. The decision engine and the occupancy ledger only talk to
storage through this class, so both can be tested against a fake directory.

Any database error is re-raised as InfrastructureFailure (retryable).
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.employee import Employee, EmployeeVehicle
from app.models.visitor import Visitor
from app.services.errors import InfrastructureFailure
from app.services.temporal_policy import local_now
from app.services.visitor_service import ACTIVE_STATUSES
from app.utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryService:
    def __init__(self, db: Session, lookup_window_hours: Optional[int] = None):
        self.db = db
        self.lookup_window = timedelta(hours=lookup_window_hours or settings.VISITOR_LOOKUP_WINDOW_HOURS)

    def _fail(self, e: Exception):
        logger.error(f"[Directory] Lookup failed: {e}", exc_info=True)
        self.db.rollback()
        raise InfrastructureFailure(f"Credential directory unavailable: {e}") from e

    # ── Employees ────────────────────────────────────────────────────────────

    def find_employee_by_plate(self, plate: str) -> Optional[Employee]:
        """Owner of ``plate`` regardless of employee or vehicle status."""
        try:
            return (
                self.db.query(Employee)
                .join(EmployeeVehicle, EmployeeVehicle.employee_id == Employee.id)
                .filter(EmployeeVehicle.plate == plate)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail(e)

    def find_active_employee_by_plate(self, plate: str) -> Optional[Employee]:
        try:
            return (
                self.db.query(Employee)
                .join(EmployeeVehicle, EmployeeVehicle.employee_id == Employee.id)
                .filter(
                    EmployeeVehicle.plate == plate,
                    EmployeeVehicle.is_active.is_(True),
                    Employee.is_active.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self._fail(e)

    def find_by_document(self, document_number: str) -> Optional[Employee]:
        try:
            return (
                self.db.query(Employee)
                .filter(Employee.document_number == document_number, Employee.is_active.is_(True))
                .first()
            )
        except SQLAlchemyError as e:
            self._fail(e)

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        try:
            return self.db.get(Employee, employee_id)
        except SQLAlchemyError as e:
            self._fail(e)

    def touch_last_access(self, employee: Employee, now: datetime):
        employee.last_access = now

    def vehicle_stats(self) -> dict:
        """Active vehicles of active employees, by type, with distinct brands and colors."""
        try:
            vehicles = (
                self.db.query(EmployeeVehicle)
                .join(Employee, EmployeeVehicle.employee_id == Employee.id)
                .filter(EmployeeVehicle.is_active.is_(True), Employee.is_active.is_(True))
                .all()
            )
        except SQLAlchemyError as e:
            self._fail(e)

        brands = sorted({v.brand for v in vehicles if v.brand})
        colors = sorted({v.color for v in vehicles if v.color})
        return {
            "total_vehicles": len(vehicles),
            "cars": sum(1 for v in vehicles if v.vehicle_type == "car"),
            "motorcycles": sum(1 for v in vehicles if v.vehicle_type == "motorcycle"),
            "unique_brands": len(brands),
            "unique_colors": len(colors),
            "brands": brands,
            "colors": colors,
        }

    # ── Visitors ─────────────────────────────────────────────────────────────

    def find_active_visitor_by_plate(self, plate: str, now: Optional[datetime] = None) -> Optional[Visitor]:
        """
        Most recent approved/in-progress pass for ``plate`` whose visit started
        within the lookup window. Overdue passes are still returned so callers
        can report *why* entry is refused.
        """
        now = now or local_now()
        try:
            return (
                self.db.query(Visitor)
                .filter(
                    Visitor.plate == plate,
                    Visitor.status.in_(ACTIVE_STATUSES),
                    Visitor.visit_date >= now - self.lookup_window,
                    Visitor.visit_date <= now,
                )
                .order_by(Visitor.visit_date.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self._fail(e)

    def get_visitor(self, visitor_id: int) -> Optional[Visitor]:
        try:
            return self.db.get(Visitor, visitor_id)
        except SQLAlchemyError as e:
            self._fail(e)

    def display_name(self, user_type: str, user_ref: Optional[int]) -> Optional[str]:
        if user_ref is None:
            return None
        if user_type == "employee":
            employee = self.get_employee(user_ref)
            return employee.full_name if employee else None
        visitor = self.get_visitor(user_ref)
        return visitor.name if visitor else None
