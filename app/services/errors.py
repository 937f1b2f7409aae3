# app/services/errors.py
"""
Domain error taxonomy and denial reason codes.

Business denials are NOT exceptions: the decision engine returns
Denied(DenialReason.X) and the caller records and returns that value.
Exceptions below cover the operational failures of the ledger and lookups.
"""

from enum import Enum


class DenialReason(str, Enum):
    INVALID_PLATE = "invalid_plate"
    INACTIVE_EMPLOYEE = "inactive_employee"
    UNAUTHORIZED_VEHICLE = "unauthorized_vehicle"
    EXPIRED_LICENSE = "expired_license"
    LICENSE_CATEGORY_MISMATCH = "license_category_mismatch"
    FIRST_THURSDAY_RESTRICTION = "first_thursday_restriction"
    VISITOR_EXPIRED = "visitor_expired"
    VISITOR_NOT_APPROVED = "visitor_not_approved"


class AccessControlError(Exception):
    """Base class for all access control failures."""


class CredentialNotFound(AccessControlError):
    """No employee or visitor credential resolves for the plate/document."""


class AlreadyOpenSession(AccessControlError):
    """The plate already has an entry without a recorded exit."""


class NoOpenSession(AccessControlError):
    """The plate has no entry awaiting an exit."""


class InvalidQRCode(AccessControlError):
    """QR token could not be decoded or does not match a valid pass."""


class InvalidStatusTransition(AccessControlError):
    """Requested visitor status change would move the pass backwards."""


class RecognitionError(AccessControlError):
    """The image could not be decoded or the OCR engine failed on it."""


class InfrastructureFailure(AccessControlError):
    """Directory or ledger storage unavailable. Safe to retry."""

    retryable = True
