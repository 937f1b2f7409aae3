# app/models/employee.py
"""
Employee credentials and their registered vehicles.
An employee may drive any of their active vehicles through the gate provided
their driver license is valid and covers the vehicle type.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship
from app.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(100), nullable=False)
    document_type = Column(String(20), default="cedula")    # cedula | extranjeria
    document_number = Column(String(50), unique=True, nullable=False, index=True)
    position = Column(String(100), nullable=False)
    work_area = Column(String(100), nullable=False)
    photo = Column(String(255))                              # path managed by the upload service
    email = Column(String(200))
    phone = Column(String(50))
    access_level = Column(String(20), default="basic", nullable=False)  # basic | supervisor | admin
    is_active = Column(Boolean, default=True, nullable=False)
    last_access = Column(DateTime)

    # Driver license
    license_number = Column(String(50), unique=True)
    license_expiry_date = Column(Date)
    license_categories = Column(JSON, default=list)          # subset of A1 A2 B1 B2 C1 C2
    license_is_valid = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime)

    vehicles = relationship(
        "EmployeeVehicle", back_populates="employee",
        cascade="all, delete-orphan", lazy="selectin",
    )

    def vehicle_for_plate(self, plate: str):
        """Active vehicle registered under ``plate``, or None."""
        for vehicle in self.vehicles:
            if vehicle.plate == plate and vehicle.is_active:
                return vehicle
        return None

    def __repr__(self):
        return f"<Employee {self.id} {self.full_name} level={self.access_level}>"


class EmployeeVehicle(Base):
    __tablename__ = "employee_vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    plate = Column(String(10), unique=True, nullable=False, index=True)
    vehicle_type = Column(String(20), nullable=False)        # car | motorcycle
    brand = Column(String(50))
    model = Column(String(50))
    color = Column(String(30))
    is_active = Column(Boolean, default=True, nullable=False)

    employee = relationship("Employee", back_populates="vehicles")

    def __repr__(self):
        return f"<EmployeeVehicle {self.plate} type={self.vehicle_type} active={self.is_active}>"
