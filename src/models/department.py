"""
Department Model
Departments route the first (manager) approval step
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class Department(Base):
    """Department model"""
    __tablename__ = "departments"

    id = Column(String(50), primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)

    # Department head; must hold the manager or general_manager role
    manager_id = Column(Integer, ForeignKey("users.id", use_alter=True, name="fk_departments_manager_id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    manager = relationship("User", foreign_keys=[manager_id], post_update=True)
    members = relationship("User", back_populates="department", foreign_keys="User.department_id")

    def __repr__(self):
        return f"<Department {self.id} - {self.name}>"
