"""
Directory Schemas
Pydantic models for departments and the employee master list
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class DepartmentCreate(BaseModel):
    """Schema for creating a department"""
    id: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)


class DepartmentUpdate(BaseModel):
    """Rename a department"""
    name: str = Field(..., min_length=1, max_length=100)


class DepartmentManagerAssign(BaseModel):
    """Assign or clear (null) the department manager"""
    manager_id: Optional[int] = None


class DepartmentResponse(BaseModel):
    id: str
    name: str
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    member_count: int = 0
    created_at: Optional[datetime] = None


class EmployeeBase(BaseModel):
    """Employee master data used to fill forms"""
    employee_number: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    department_id: Optional[str] = None
    position: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    employee_number: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = None
    department_id: Optional[str] = None
    position: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class EmployeeResponse(EmployeeBase):
    id: int
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
