# app/services/access_decision.py
"""
Access decision engine.

decide_employee / decide_visitor are pure: given a credential (or None), the
plate and the current time, they return Granted(info) or Denied(reason).
AccessDecisionEngine.validate does the lookups, calls the pure rules and, on
denial, hands the very same Denied value to the audit recorder. The response
sent to the gate and the audit row are built from one object, so they cannot
disagree.

Validation never opens an occupancy session; that is OccupancyLedger.entry.

Employee checks (first failure wins):
  1. plate not registered              → invalid_plate
  2. employee inactive                 → inactive_employee
  3. vehicle not active for employee   → unauthorized_vehicle
  4. license invalid / expired         → expired_license
  5. license lacks vehicle category    → license_category_mismatch
  6. first Thursday + basic level      → first_thursday_restriction

Visitor checks:
  1. no approved/in-progress pass      → invalid_plate
  2. pass cannot be used               → visitor_expired | visitor_not_approved
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, Union

from app.services.errors import DenialReason
from app.services.plate_normalizer import canonicalize_plate
from app.services.temporal_policy import is_restricted_day, local_now
from app.services import visitor_service
from app.utils.logger import get_logger

logger = get_logger(__name__)

USER_KINDS = ("employee", "visitor")

REQUIRED_LICENSE_CATEGORIES = {
    "motorcycle": {"A1", "A2"},
    "car": {"B1", "B2"},
}

DENIAL_MESSAGES = {
    DenialReason.INVALID_PLATE: "License plate not found in {kind} records",
    DenialReason.INACTIVE_EMPLOYEE: "Employee account is inactive",
    DenialReason.UNAUTHORIZED_VEHICLE: "Vehicle not authorized for this employee",
    DenialReason.EXPIRED_LICENSE: "Driver license is expired or invalid",
    DenialReason.LICENSE_CATEGORY_MISMATCH: "License doesn't cover {vehicle_type} category",
    DenialReason.FIRST_THURSDAY_RESTRICTION: "First Thursday restriction - Special permit required",
    DenialReason.VISITOR_EXPIRED: "Visitor pass has expired",
    DenialReason.VISITOR_NOT_APPROVED: "Visitor not approved or already inside",
}


@dataclass(frozen=True)
class Granted:
    user_type: str
    user_ref: int
    vehicle_type: str
    is_first_thursday: bool
    info: dict = field(default_factory=dict)

    granted = True


@dataclass(frozen=True)
class Denied:
    reason: DenialReason
    user_type: str
    is_first_thursday: bool
    user_ref: Optional[int] = None
    vehicle_type: str = "unknown"

    granted = False

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES[self.reason].format(kind=self.user_type, vehicle_type=self.vehicle_type)

    @property
    def requires_special_permit(self) -> bool:
        if self.reason == DenialReason.FIRST_THURSDAY_RESTRICTION:
            return True
        # Unknown plates on a restricted day are pointed at the permit desk too
        return (self.reason == DenialReason.INVALID_PLATE
                and self.user_type == "employee" and self.is_first_thursday)


Decision = Union[Granted, Denied]
DenialRecorder = Callable[[Denied, str, datetime, str], Awaitable[None]]


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def has_valid_license(employee, now: datetime) -> bool:
    expiry = _as_date(employee.license_expiry_date)
    return bool(employee.license_is_valid) and expiry is not None and expiry > now.date()


def license_covers(employee, vehicle_type: str) -> bool:
    needed = REQUIRED_LICENSE_CATEGORIES.get(vehicle_type, set())
    return bool(needed & set(employee.license_categories or []))


def decide_employee(employee, plate: str, now: datetime) -> Decision:
    restricted = is_restricted_day(now)

    if employee is None:
        return Denied(DenialReason.INVALID_PLATE, "employee", restricted)

    if not employee.is_active:
        registered = next((v for v in employee.vehicles if v.plate == plate), None)
        return Denied(DenialReason.INACTIVE_EMPLOYEE, "employee", restricted, employee.id,
                      registered.vehicle_type if registered else "unknown")

    vehicle = employee.vehicle_for_plate(plate)
    if vehicle is None:
        return Denied(DenialReason.UNAUTHORIZED_VEHICLE, "employee", restricted, employee.id)

    if not has_valid_license(employee, now):
        return Denied(DenialReason.EXPIRED_LICENSE, "employee", restricted, employee.id, vehicle.vehicle_type)

    if not license_covers(employee, vehicle.vehicle_type):
        return Denied(DenialReason.LICENSE_CATEGORY_MISMATCH, "employee", restricted, employee.id,
                      vehicle.vehicle_type)

    if restricted and employee.access_level == "basic":
        return Denied(DenialReason.FIRST_THURSDAY_RESTRICTION, "employee", restricted, employee.id,
                      vehicle.vehicle_type)

    return Granted(
        user_type="employee",
        user_ref=employee.id,
        vehicle_type=vehicle.vehicle_type,
        is_first_thursday=restricted,
        info={
            "user_type": "employee",
            "driver_name": employee.full_name,
            "plate": plate,
            "vehicle_type": vehicle.vehicle_type,
            "position": employee.position,
            "work_area": employee.work_area,
            "photo": employee.photo,
            "is_first_thursday": restricted,
            "has_special_permit": employee.access_level != "basic",
        },
    )


def decide_visitor(visitor, plate: str, now: datetime) -> Decision:
    restricted = is_restricted_day(now)

    if visitor is None:
        return Denied(DenialReason.INVALID_PLATE, "visitor", restricted)

    if not visitor_service.can_enter(visitor, now):
        reason = (DenialReason.VISITOR_EXPIRED if visitor_service.is_expired(visitor, now)
                  else DenialReason.VISITOR_NOT_APPROVED)
        return Denied(reason, "visitor", restricted, visitor.id)

    return Granted(
        user_type="visitor",
        user_ref=visitor.id,
        vehicle_type="unknown",
        is_first_thursday=restricted,
        info={
            "user_type": "visitor",
            "driver_name": visitor.name,
            "plate": plate,
            "vehicle_type": "unknown",
            "purpose": visitor.purpose,
            "destination_area": visitor.destination_area,
            "expiry_time": visitor_service.expiry_time(visitor),
            "qr_token": visitor.qr_token,
        },
    )


class AccessDecisionEngine:
    """Looks up credentials, applies the rules, audits every denial."""

    def __init__(self, directory, record_denial: DenialRecorder):
        self.directory = directory
        self.record_denial = record_denial

    async def validate(self, plate: str, kind: str = "employee", now: Optional[datetime] = None,
                       detection_method: str = "manual") -> Decision:
        if kind not in USER_KINDS:
            raise ValueError(f"Unknown access kind '{kind}'")
        now = now or local_now()
        plate = canonicalize_plate(plate)

        if kind == "employee":
            decision = decide_employee(self.directory.find_employee_by_plate(plate), plate, now)
        else:
            decision = decide_visitor(self.directory.find_active_visitor_by_plate(plate, now), plate, now)

        if isinstance(decision, Denied):
            logger.warning(f"[Access] DENIED {kind} plate={plate} reason={decision.reason.value}")
            await self.record_denial(decision, plate, now, detection_method)
        else:
            logger.info(f"[Access] GRANTED {kind} plate={plate} driver={decision.info['driver_name']}")
        return decision
