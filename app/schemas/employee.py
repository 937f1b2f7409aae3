# app/schemas/employee.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class EmployeeVehicleOut(BaseModel):
    plate: str
    vehicle_type: str
    brand: Optional[str]
    model: Optional[str]
    color: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class EmployeeOut(BaseModel):
    id: int
    full_name: str
    document_number: str
    position: str
    work_area: str
    photo: Optional[str]
    access_level: str
    is_active: bool
    last_access: Optional[datetime]
    license_expiry_date: Optional[date]
    license_categories: Optional[list[str]]
    license_is_valid: bool
    vehicles: list[EmployeeVehicleOut]

    class Config:
        from_attributes = True


class VehicleStatsOut(BaseModel):
    total_vehicles: int
    cars: int
    motorcycles: int
    unique_brands: int
    unique_colors: int
    brands: list[str]
    colors: list[str]
