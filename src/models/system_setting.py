"""
System Setting Model
Key/value settings editable by admins (broadcast email lists)
"""

from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime

from src.config.database import Base


BROADCAST_EMAILS_KEY = "broadcast_emails"


class SystemSetting(Base):
    """System setting model"""
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SystemSetting {self.key}>"
