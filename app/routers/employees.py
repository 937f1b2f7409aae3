# app/routers/employees.py
"""Directory lookups and vehicle statistics for the guard console."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.employee import EmployeeOut, VehicleStatsOut
from app.services.directory_service import DirectoryService
from app.services.plate_normalizer import canonicalize_plate

router = APIRouter()


@router.get("/employees/search/plate/{plate}", summary="Look up an employee by plate")
def lookup_by_plate(plate: str, db: Session = Depends(get_db)):
    plate = canonicalize_plate(plate)
    employee = DirectoryService(db).find_active_employee_by_plate(plate)
    if not employee:
        return {"plate": plate, "status": "unknown", "registered": False}
    vehicle = employee.vehicle_for_plate(plate)
    return {"plate": plate, "status": "known", "registered": True,
            "owner": employee.full_name, "vehicle_type": vehicle.vehicle_type if vehicle else None,
            "employee": EmployeeOut.model_validate(employee)}


@router.get("/employees/by-document/{document_number}", response_model=EmployeeOut)
def lookup_by_document(document_number: str, db: Session = Depends(get_db)):
    employee = DirectoryService(db).find_by_document(document_number.strip())
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.get("/vehicles/stats", response_model=VehicleStatsOut, summary="Registered vehicle statistics")
def get_vehicle_stats(db: Session = Depends(get_db)):
    return DirectoryService(db).vehicle_stats()
