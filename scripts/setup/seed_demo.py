# scripts/setup/seed_demo.py
"""
Load a small demo directory (employees, vehicles, visitor passes) so the gate
endpoints can be exercised without the registration front-end.
Usage: python scripts/setup/seed_demo.py [--reset]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import timedelta

from app.config import settings
from app.database import Base, SessionLocal, create_tables, engine
from app.models.employee import Employee, EmployeeVehicle
from app.models.visitor import Visitor
from app.services.temporal_policy import local_now
from app.services.visitor_service import build_qr_token, count_open_passes_for_day

EMPLOYEES = [
    {
        "full_name": "Ana María Gómez", "document_number": "1020304050", "position": "Supervisora de planta",
        "work_area": "Producción", "access_level": "supervisor", "license_number": "LIC-0001",
        "license_categories": ["B1", "A2"], "vehicles": [("ABC123", "car"), ("XYZ12D", "motorcycle")],
    },
    {
        "full_name": "Carlos Pérez", "document_number": "79888777", "position": "Operario",
        "work_area": "Bodega", "access_level": "basic", "license_number": "LIC-0002",
        "license_categories": ["B1"], "vehicles": [("DEF456", "car")],
    },
    {
        "full_name": "Luisa Fernanda Ríos", "document_number": "52111222", "position": "Mensajera",
        "work_area": "Administración", "access_level": "basic", "license_number": "LIC-0003",
        "license_categories": ["B1"], "vehicles": [("GH1234", "motorcycle")],
    },
]

VISITORS = [
    {"name": "Jorge Ramírez", "document_number": "1010101010", "plate": "JKL789",
     "purpose": "Mantenimiento de equipos", "destination_area": "Producción", "status": "approved"},
    {"name": "Paula Torres", "document_number": "2020202020", "plate": "MNO321",
     "purpose": "Reunión comercial", "destination_area": "Gerencia", "status": "pending"},
]


def main():
    parser = argparse.ArgumentParser(description="Seed demo access-control data")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args()

    if args.reset:
        Base.metadata.drop_all(bind=engine)
    create_tables()

    now = local_now()
    db = SessionLocal()
    try:
        for row in EMPLOYEES:
            if db.query(Employee).filter(Employee.document_number == row["document_number"]).first():
                print(f"   • {row['full_name']} already present")
                continue
            vehicles = row.pop("vehicles")
            employee = Employee(
                **row,
                license_expiry_date=now.date() + timedelta(days=365),
                license_is_valid=True,
                is_active=True,
                created_at=now,
            )
            employee.vehicles = [EmployeeVehicle(plate=p, vehicle_type=t, is_active=True) for p, t in vehicles]
            db.add(employee)
            print(f"   ✓ Employee {employee.full_name} ({', '.join(p for p, _ in vehicles)})")

        for row in VISITORS:
            if count_open_passes_for_day(db, row["plate"], now):
                print(f"   • Pass for {row['plate']} already open today")
                continue
            visitor = Visitor(**row, visit_date=now, expected_duration_hours=settings.DEFAULT_VISIT_DURATION_HOURS,
                              created_at=now)
            db.add(visitor)
            db.flush()   # id is part of the QR payload
            visitor.qr_token = build_qr_token(visitor)
            print(f"   ✓ Visitor {visitor.name} ({visitor.plate}) status={visitor.status}")

        db.commit()
    finally:
        db.close()
    print("🎉 Demo data loaded")


if __name__ == "__main__":
    main()
