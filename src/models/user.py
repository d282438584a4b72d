"""
User Model
Represents system users with role-based access control
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    STAFF = "staff"
    MANAGER = "manager"
    GENERAL_MANAGER = "general_manager"
    HRD = "hrd"
    FINANCE = "finance"
    ADMIN = "admin"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    employee_number = Column(String, unique=True, index=True, nullable=True)  # NIK
    position = Column(String, nullable=True)  # jabatan
    hashed_password = Column(String, nullable=False)

    # Role and Department
    role = Column(Enum(UserRole), default=UserRole.STAFF, nullable=False)
    department_id = Column(String(50), ForeignKey("departments.id"), nullable=True, index=True)
    phone = Column(String, nullable=True)

    # Status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    department = relationship("Department", back_populates="members", foreign_keys=[department_id])
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.username} ({self.role.value})>"

    @property
    def display_name(self) -> str:
        """Name shown on approval steps and emails"""
        return self.full_name or self.username or self.email or "Unknown"

    def has_permission(self, permission: str) -> bool:
        """Check if user has specific permission"""
        permission_map = {
            "submit_request": self.is_active,
            "approve_request": self.role in [UserRole.MANAGER, UserRole.GENERAL_MANAGER, UserRole.HRD, UserRole.FINANCE],
            "view_all_requests": self.role != UserRole.STAFF,
            "manage_users": self.role == UserRole.ADMIN,
            "view_recapitulation": self.role in [UserRole.ADMIN, UserRole.HRD, UserRole.MANAGER, UserRole.GENERAL_MANAGER],
        }
        return permission_map.get(permission, False)
