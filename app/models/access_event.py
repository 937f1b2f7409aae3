# app/models/access_event.py
"""
Access event log (audit trail + occupancy ledger).
Rows are appended by the decision engine (denials) and the occupancy ledger
(entries). The only update ever made is setting exit_time when the vehicle leaves.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, text
from app.database import Base

OPEN_SESSION_CLAUSE = text(
    "access_type = 'entry' AND status = 'successful' AND exit_time IS NULL"
)


class AccessEvent(Base):
    __tablename__ = "access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_type = Column(String(20), nullable=False)           # employee | visitor
    user_ref = Column(Integer)                               # employees.id / visitors.id (null if unknown)
    plate = Column(String(10), nullable=False)
    vehicle_type = Column(String(20), default="unknown")     # car | motorcycle | unknown
    access_type = Column(String(20), nullable=False)         # entry | exit | denied
    status = Column(String(20), nullable=False)              # successful | denied | suspicious
    denial_reason = Column(String(50), index=True)
    access_point = Column(String(50), default="main_gate")
    access_time = Column(DateTime, nullable=False, index=True)
    exit_time = Column(DateTime)
    is_first_thursday = Column(Boolean, default=False, nullable=False)
    detection_method = Column(String(20), default="manual")  # manual | camera_scan | qr_scan | rfid
    notes = Column(Text)

    __table_args__ = (
        Index("ix_access_events_plate_time", "plate", "access_time"),
        # At most one open session per plate, even across worker processes
        Index(
            "uq_access_events_open_session", "plate", unique=True,
            postgresql_where=OPEN_SESSION_CLAUSE,
            sqlite_where=OPEN_SESSION_CLAUSE,
        ),
    )

    def __repr__(self):
        return f"<AccessEvent {self.id} plate={self.plate} type={self.access_type} status={self.status}>"
