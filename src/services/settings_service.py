"""
Settings Service
Reads and writes admin-editable system settings
"""

from sqlalchemy.orm import Session

from src.models.system_setting import SystemSetting, BROADCAST_EMAILS_KEY
from src.schemas.request import BroadcastEmails
from src.utils.logger import setup_logger

logger = setup_logger()


class SettingsService:
    """Access to the system_settings table"""

    def get_broadcast_emails(self, db: Session) -> BroadcastEmails:
        setting = db.query(SystemSetting).filter(SystemSetting.key == BROADCAST_EMAILS_KEY).first()
        if not setting or not setting.value:
            return BroadcastEmails()
        return BroadcastEmails.model_validate(setting.value)

    def save_broadcast_emails(self, db: Session, emails: BroadcastEmails) -> BroadcastEmails:
        """
        Replace the stored broadcast lists

        Args:
            db: Database session
            emails: Validated lists (blank entries already dropped)
        """
        value = emails.model_dump(mode="json")
        setting = db.query(SystemSetting).filter(SystemSetting.key == BROADCAST_EMAILS_KEY).first()
        if setting:
            setting.value = value
        else:
            db.add(SystemSetting(key=BROADCAST_EMAILS_KEY, value=value))
        db.commit()
        logger.info(
            f"Broadcast emails saved: hrd={len(emails.hrd)}, finance={len(emails.finance)}, "
            f"general_manager={len(emails.general_manager)}, departments={len(emails.managers)}"
        )
        return emails


# Create singleton instance
settings_service = SettingsService()
