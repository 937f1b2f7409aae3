# tests/conftest.py
"""Shared fixtures: in-memory SQLite session and credential factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("API_KEY", None)

import pytest
from datetime import date, timedelta
from app.database import Base, SessionLocal, create_tables, engine
from app.models.employee import Employee, EmployeeVehicle
from app.models.visitor import Visitor
from app.services.temporal_policy import local_now


@pytest.fixture
def db():
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def build_employee(plate="ABC123", vehicle_type="car", access_level="supervisor", is_active=True,
                   vehicle_active=True, categories=("B1",), license_valid=True,
                   license_expiry=None, document_number="1020304050", full_name="Ana Gómez",
                   brand=None, color=None, **extra):
    employee = Employee(
        full_name=full_name,
        document_number=document_number,
        position="Supervisor",
        work_area="Producción",
        photo="photos/ana.jpg",
        access_level=access_level,
        is_active=is_active,
        license_number=f"LIC-{document_number}",
        license_expiry_date=license_expiry or date(2030, 1, 1),
        license_categories=list(categories),
        license_is_valid=license_valid,
        **extra,
    )
    employee.vehicles = [EmployeeVehicle(plate=plate, vehicle_type=vehicle_type, is_active=vehicle_active,
                                        brand=brand, color=color)]
    return employee


def build_visitor(plate="JKL789", status="approved", visit_date=None, hours=4, name="Jorge Ramírez",
                  document_number="1010101010", **extra):
    return Visitor(
        name=name,
        document_number=document_number,
        plate=plate,
        purpose="Mantenimiento",
        destination_area="Producción",
        status=status,
        visit_date=visit_date or local_now() - timedelta(hours=1),
        expected_duration_hours=hours,
        **extra,
    )


@pytest.fixture
def make_employee(db):
    def _make(**kwargs):
        employee = build_employee(**kwargs)
        db.add(employee)
        db.commit()
        return employee
    return _make


@pytest.fixture
def make_visitor(db):
    def _make(**kwargs):
        visitor = build_visitor(**kwargs)
        db.add(visitor)
        db.commit()
        return visitor
    return _make
