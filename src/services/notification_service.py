"""
Notification Service
Handles creation of in-app notifications for the approval workflow
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional, Tuple
from datetime import datetime

from src.models.notification import Notification, NotificationType
from src.models.request import ApprovalRequest, StepRole, normalize_request_type
from src.models.user import User
from src.schemas.request import RequestRecord
from src.services.directory_service import directory_service
from src.utils.helpers import humanize, truncate_string
from src.utils.logger import setup_logger

logger = setup_logger()


class NotificationService:
    """Service for managing notifications"""

    def _add(self, db: Session, user_id: int, type_: NotificationType, title: str, message: str, request_id: str):
        db.add(Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            request_id=request_id
        ))

    def notify_approval_required(
        self,
        db: Session,
        request: RequestRecord,
        step_role: StepRole
    ) -> List[User]:
        """
        Notify the approvers of the step a request is waiting at

        Args:
            db: Database session
            request: Request waiting for approval
            step_role: Role owning the pending step

        Returns:
            List[User]: Approvers that were notified
        """
        approvers = directory_service.find_approvers(db, step_role, request.department_id)

        if not approvers:
            logger.warning(f"No active {step_role.value} users found to notify for request {request.id}")
            return []

        for approver in approvers:
            self._add(
                db,
                approver.id,
                NotificationType.APPROVAL_REQUIRED,
                f"New {humanize(request.type).title()} Form Requires Approval",
                f"Form {request.id} from {request.requester_name} is waiting for your approval.",
                request.id
            )

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store approval notifications for {request.id}: {str(e)}")
            return []

        logger.info(f"Notified {len(approvers)} {step_role.value} user(s) for request {request.id}")
        return approvers

    def notify_request_decided(
        self,
        db: Session,
        request: RequestRecord,
        decided_by: str,
        step_role: StepRole,
        comment: Optional[str] = None
    ):
        """
        Notify the requester about a decision on their request

        Args:
            db: Database session
            request: Request after the decision
            decided_by: Name of the approver
            step_role: Role of the decided step
            comment: Optional decision comment
        """
        if request.status.value == "rejected":
            type_ = NotificationType.REQUEST_REJECTED
            title = "Form Rejected"
            message = f"Your form {request.id} was rejected by {decided_by} ({humanize(step_role)})."
        elif request.status.value == "approved":
            type_ = NotificationType.REQUEST_APPROVED
            title = "Form Fully Approved"
            message = f"Your form {request.id} has been fully approved by {decided_by}."
        else:
            type_ = NotificationType.REQUEST_APPROVED
            title = f"Form Approved by {humanize(step_role).title()}"
            message = f"Your form {request.id} was approved by {decided_by} and moves to the next approver."

        if comment:
            message += f" Comment: {truncate_string(comment, 200)}"

        self._add(db, request.requester_id, type_, title, message, request.id)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store decision notification for {request.id}: {str(e)}")
            return

        logger.info(f"Notified user {request.requester_id} about request {request.id}: {request.status.value}")

    # ============================================
    # INBOX
    # ============================================

    def _unread(self, db: Session, user_id: int):
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        )

    def unread_count(self, db: Session, user_id: int) -> int:
        return self._unread(db, user_id).count()

    def list_for_user(
        self,
        db: Session,
        user_id: int,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[int, List[dict]]:
        """
        A page of the user's notifications, newest first

        Each entry carries the type and status of its request so the inbox
        can render without a second round trip.

        Returns:
            Tuple[int, List[dict]]: Total matching count and the page
        """
        query = self._unread(db, user_id) if unread_only else \
            db.query(Notification).filter(Notification.user_id == user_id)
        total = query.count()
        notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()) \
            .offset(skip).limit(limit).all()

        request_ids = {n.request_id for n in notifications if n.request_id}
        requests = {}
        if request_ids:
            for row in db.query(ApprovalRequest).filter(ApprovalRequest.id.in_(request_ids)).all():
                requests[row.id] = row

        page = []
        for notification in notifications:
            request = requests.get(notification.request_id)
            page.append({
                "id": notification.id,
                "type": notification.type.value,
                "title": notification.title,
                "message": notification.message,
                "request_id": notification.request_id,
                "request_type": normalize_request_type(request.type).value if request else None,
                "request_status": request.status.value if request else None,
                "is_read": notification.is_read,
                "read_at": notification.read_at.isoformat() if notification.read_at else None,
                "created_at": notification.created_at.isoformat() if notification.created_at else None,
            })
        return total, page

    def mark_read(self, db: Session, user_id: int, notification_id: int) -> Optional[bool]:
        """
        Mark one notification read

        Returns:
            bool: True if it changed, False if it was already read, None if not found
        """
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            return None
        if notification.is_read:
            return False

        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.commit()
        return True

    def mark_all_read(self, db: Session, user_id: int) -> int:
        count = self._unread(db, user_id).update(
            {"is_read": True, "read_at": datetime.utcnow()},
            synchronize_session=False
        )
        db.commit()
        return count

    def delete(self, db: Session, user_id: int, notification_id: Optional[int] = None) -> int:
        """Delete one notification, or all of the user's when no id is given"""
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if notification_id is not None:
            query = query.filter(Notification.id == notification_id)
        count = query.delete(synchronize_session=False)
        db.commit()
        return count


# Create singleton instance
notification_service = NotificationService()
