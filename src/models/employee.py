"""
Employee Model
Directory entries selectable on multi-employee forms (overtime, leave, sick leave)
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class Employee(Base):
    """Employee directory model"""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_number = Column(String, unique=True, index=True, nullable=False)  # NIK
    name = Column(String, nullable=False)
    department_id = Column(String(50), ForeignKey("departments.id"), nullable=True, index=True)
    position = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    department = relationship("Department")

    def __repr__(self):
        return f"<Employee {self.employee_number} - {self.name}>"
