"""
Audit Log Model
Tracks approval decisions and administrative changes
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class AuditLog(Base):
    """Audit log model"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # User who performed the action
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # cleared when the user is deleted

    # Action details
    action = Column(String, nullable=False)  # e.g., "submit_request", "approve_request"
    entity_type = Column(String, nullable=False)  # e.g., "request", "department"
    entity_id = Column(String, nullable=True)

    # Details
    description = Column(Text, nullable=False)
    changes = Column(JSON, nullable=True)  # Before/after values

    # Related request (if applicable)
    request_id = Column(String(64), ForeignKey("requests.id"), nullable=True)

    # Timestamp
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<AuditLog {self.action} by User {self.user_id}>"
