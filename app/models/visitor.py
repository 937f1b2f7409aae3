# app/models/visitor.py
"""
Visitor passes. A pass authorizes one vehicle for one visit starting at
visit_date and lasting expected_duration_hours.
Expiry is derived on read (see app.services.visitor_service), never stored.
"""

from sqlalchemy import Column, DateTime, Integer, String, Text
from app.database import Base


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    document_number = Column(String(50), nullable=False, index=True)
    phone = Column(String(50))
    email = Column(String(200))
    plate = Column(String(10), nullable=False, index=True)
    purpose = Column(String(200), nullable=False)
    destination_area = Column(String(100), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    # pending | approved | rejected | in_progress | completed | expired
    visit_date = Column(DateTime, nullable=False, index=True)
    expected_duration_hours = Column(Integer, default=4, nullable=False)
    qr_token = Column(Text, unique=True)
    entry_time = Column(DateTime)
    exit_time = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Visitor {self.id} {self.name} plate={self.plate} status={self.status}>"
