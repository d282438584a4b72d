"""
User Schemas
Pydantic models for user-related requests and responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRoleEnum(str, Enum):
    """User role enumeration"""
    STAFF = "staff"
    MANAGER = "manager"
    GENERAL_MANAGER = "general_manager"
    HRD = "hrd"
    FINANCE = "finance"
    ADMIN = "admin"


class UserBase(BaseModel):
    """Base user schema with common fields"""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=200)
    employee_number: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = None
    department_id: Optional[str] = None
    phone: Optional[str] = None


class UserRegister(UserBase):
    """Self-registration; the role is always staff"""
    password: str = Field(..., min_length=8)


class UserCreate(UserBase):
    """Schema for creating a user as admin"""
    password: str = Field(..., min_length=8)
    role: UserRoleEnum = UserRoleEnum.STAFF


class UserUpdate(BaseModel):
    """Schema for updating user information"""
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    employee_number: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRoleEnum] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8)


class UserResponse(UserBase):
    """Schema for user response"""
    id: int
    role: UserRoleEnum
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True
