"""
Approval Service
Read -> decide -> write cycle around the approval engine, plus submission,
listing and the notifications that follow each decision
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.audit_log import AuditLog
from src.models.request import INITIAL_STATUS, RequestStatus, RequestType, StepRole
from src.models.user import User, UserRole
from src.schemas.request import ActingUser, ApprovalStep, RequestRecord, RequestResponse
from src.services import approval_engine
from src.services.directory_service import directory_service, to_acting_user
from src.services.email_service import email_service
from src.services.notification_service import notification_service
from src.services.request_store import RequestFilter, request_store
from src.services.settings_service import settings_service
from src.utils.exceptions import RequestNotFoundError
from src.utils.helpers import request_reason
from src.utils.logger import setup_logger, log_audit

logger = setup_logger()


class ApprovalService:
    """Caller-facing approval operations"""

    def __init__(self):
        """Initialize with dependent services"""
        self.store = request_store
        self.directory = directory_service
        self.notification_service = notification_service
        self.email_service = email_service

    # ============================================
    # READS
    # ============================================

    def can_act(self, request: RequestRecord, user: ActingUser) -> bool:
        return approval_engine.can_act(request, user)

    def list_visible_requests(
        self,
        db: Session,
        user: ActingUser,
        filter_status: str = "pending",
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[RequestRecord]:
        """
        Requests shown on the approvals page

        Args:
            db: Database session
            user: Acting user
            filter_status: "pending" (actionable by the user), "all", or a concrete status

        Returns:
            List[RequestRecord]: Newest first
        """
        records = self.store.query(db, RequestFilter.for_user(user))

        if filter_status == "pending":
            records = [r for r in records if approval_engine.can_act(r, user)]
        elif filter_status != "all":
            records = [r for r in records if r.status.value == filter_status]

        if skip:
            records = records[skip:]
        if limit is not None:
            records = records[:limit]
        return records

    def list_actionable_requests(self, db: Session, user: ActingUser) -> List[RequestRecord]:
        """Requests the user can approve or reject right now"""
        return self.list_visible_requests(db, user, filter_status="pending")

    def get_viewable_request(self, db: Session, request_id: str, user: ActingUser) -> RequestRecord:
        """
        Load a request the user is allowed to open

        Requesters see their own requests, approvers what their approval list
        shows, and every non-staff role can browse the full history.

        Raises:
            RequestNotFoundError: If missing or not viewable
        """
        record = self.store.get(db, request_id)
        if (
            record.requester_id == user.id
            or user.role != UserRole.STAFF.value
            or approval_engine.is_visible_to(record, user)
        ):
            return record
        raise RequestNotFoundError(f"Request {request_id} not found", request_id=request_id)

    def my_requests(self, db: Session, user: ActingUser) -> List[RequestRecord]:
        return self.store.query(db, RequestFilter(requester_id=user.id))

    def history(self, db: Session, user: ActingUser, q: Optional[str] = None) -> List[RequestRecord]:
        """
        Request history with free-text search

        Staff see their own requests, other roles see all. The search matches
        type, requester name or id.
        """
        if user.role == UserRole.STAFF.value:
            records = self.store.query(db, RequestFilter(requester_id=user.id))
        else:
            records = self.store.query(db)

        if q:
            needle = q.lower()
            records = [
                r for r in records
                if needle in r.type.value.lower()
                or needle in (r.requester_name or "").lower()
                or needle in r.id.lower()
            ]
        return records

    def dashboard(self, db: Session, user: ActingUser, now: Optional[datetime] = None) -> dict:
        """
        Monthly counters for the requester plus their approval workload

        Returns:
            dict: total, approved, rejected, in_progress, pending_my_approval, recent
        """
        now = now or datetime.utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        mine = self.store.query(db, RequestFilter(requester_id=user.id, created_from=month_start))

        approved = sum(1 for r in mine if r.status == RequestStatus.APPROVED)
        rejected = sum(1 for r in mine if r.status == RequestStatus.REJECTED)

        return {
            "month": month_start.strftime("%Y-%m"),
            "total": len(mine),
            "approved": approved,
            "rejected": rejected,
            "in_progress": len(mine) - approved - rejected,
            "pending_my_approval": len(self.list_actionable_requests(db, user)),
            "recent": self.store.query(db, RequestFilter(requester_id=user.id), limit=5),
        }

    def build_response(
        self,
        db: Session,
        record: RequestRecord,
        user: ActingUser,
        department_names: Optional[dict] = None
    ) -> RequestResponse:
        """Serialise a record with its resolved flow and the caller's permissions"""
        flow = approval_engine.resolve_approval_flow(record)
        if department_names is not None:
            department_name = department_names.get(record.department_id, record.department_id)
        else:
            department_name = self.directory.get_department_name(db, record.department_id)

        return RequestResponse(
            id=record.id,
            type=record.type,
            requester_id=record.requester_id,
            requester_name=record.requester_name,
            department_id=record.department_id,
            department_name=department_name,
            status=record.status,
            approval_flow=flow,
            current_step_index=approval_engine.current_step_index(flow),
            can_act=approval_engine.can_act(record, user),
            payload=record.payload,
            created_at=record.created_at,
            updated_at=record.updated_at,
            version=record.version,
        )

    # ============================================
    # WRITES
    # ============================================

    def submit_request(
        self,
        db: Session,
        requester: User,
        request_type: RequestType,
        payload: dict,
        department_id: str,
        approval_flow: Optional[List[ApprovalStep]] = None
    ) -> RequestRecord:
        """
        Store a new request and alert the first approvers

        Args:
            db: Database session
            requester: Submitting user
            request_type: Form type
            payload: Validated form fields
            department_id: Owning department
            approval_flow: Caller-supplied flow, empty for the default chain

        Returns:
            RequestRecord: Stored request
        """
        record = self.store.create(
            db,
            request_type=request_type,
            requester_id=requester.id,
            requester_name=requester.display_name,
            department_id=department_id,
            status=INITIAL_STATUS.get(request_type, RequestStatus.PENDING),
            payload=payload,
            approval_flow=approval_flow,
        )

        self._write_audit(
            db,
            user_id=requester.id,
            action="submit_request",
            record=record,
            description=f"Submitted {request_type.value} request {record.id}",
            changes={"status": record.status.value, "department_id": department_id},
        )

        step_role = approval_engine.next_step_role(record)
        if step_role:
            self._alert_approvers(db, record, step_role)

        return record

    def apply_decision(
        self,
        db: Session,
        request_id: str,
        user: User,
        action: str,
        comment: Optional[str] = None
    ) -> RequestRecord:
        """
        Approve or reject the current step of a request

        Args:
            db: Database session
            request_id: Request to decide on
            user: Acting user
            action: "approved" or "rejected"
            comment: Optional decision comment

        Returns:
            RequestRecord: Stored request after the decision

        Raises:
            RequestNotFoundError: Unknown request id
            InvalidStateError: Nothing left to decide
            AuthorizationError: User may not act now
            ConflictError: Request changed since it was read
            StoreWriteError: Database write failed
        """
        acting = to_acting_user(user)
        logger.info(f"User {user.username} ({acting.role}) attempting to {action} request {request_id}")

        current = self.store.get(db, request_id)
        flow = approval_engine.resolve_approval_flow(current)
        step_role = flow[approval_engine.current_step_index(flow)].role

        decided = approval_engine.apply_decision(current, acting, action, comment)
        stored = self.store.update(db, decided, expected_version=current.version)

        logger.info(
            f"✅ Request {stored.id}: {current.status.value} -> {stored.status.value} "
            f"by {user.username} at {step_role.value} step"
        )

        self._after_decision(db, stored, user, step_role, action, comment)
        return stored

    # ============================================
    # SIDE EFFECTS
    # ============================================

    def _summary(self, db: Session, record: RequestRecord) -> dict:
        return {
            "id": record.id,
            "type": record.type.value,
            "status": record.status.value,
            "requester_name": record.requester_name,
            "department_name": self.directory.get_department_name(db, record.department_id),
            "created_at": record.created_at,
            "reason": request_reason(record.payload),
        }

    def _alert_approvers(self, db: Session, record: RequestRecord, step_role: StepRole):
        approvers = self.notification_service.notify_approval_required(db, record, step_role)
        summary = self._summary(db, record)
        for approver in approvers:
            self.email_service.send_approval_request(approver.email, approver.display_name, summary)

    def _after_decision(
        self,
        db: Session,
        record: RequestRecord,
        user: User,
        step_role: StepRole,
        action: str,
        comment: Optional[str]
    ):
        """Notifications, emails and audit for a committed decision"""
        self.notification_service.notify_request_decided(db, record, user.display_name, step_role, comment)

        requester = db.query(User).filter(User.id == record.requester_id).first()
        summary = self._summary(db, record)
        if requester:
            self.email_service.send_decision_notification(
                to_email=requester.email,
                requester_name=requester.display_name,
                request_data=summary,
                decided_by=user.display_name,
                step_role=step_role.value,
                action=action,
                comment=comment,
            )

        next_role = approval_engine.next_step_role(record)
        if next_role:
            self._alert_approvers(db, record, next_role)
        elif record.status == RequestStatus.APPROVED:
            self.email_service.send_full_broadcast(self._broadcast_recipients(db, record, requester), summary)

        self._write_audit(
            db,
            user_id=user.id,
            action="approve_request" if action == "approved" else "reject_request",
            record=record,
            description=f"{action.capitalize()} request {record.id} at {step_role.value} step",
            changes={"step": step_role.value, "status": record.status.value, "comment": comment},
        )

    def _broadcast_recipients(self, db: Session, record: RequestRecord, requester: Optional[User]) -> List[str]:
        """Requester, every approver who decided, and the configured broadcast lists"""
        recipients = [requester.email] if requester else []

        decider_ids = {step.decided_by_user_id for step in record.approval_flow if step.decided_by_user_id}
        if decider_ids:
            recipients.extend(u.email for u in db.query(User).filter(User.id.in_(decider_ids)).all())

        lists = settings_service.get_broadcast_emails(db)
        recipients.extend(lists.hrd)
        recipients.extend(lists.finance)
        recipients.extend(lists.general_manager)
        recipients.extend(lists.managers.get(record.department_id or "", []))
        return [str(email) for email in recipients]

    def _write_audit(self, db: Session, user_id: int, action: str, record: RequestRecord, description: str, changes: dict):
        log_audit(user_id, action, f"request={record.id} {changes}")
        try:
            db.add(AuditLog(
                user_id=user_id,
                action=action,
                entity_type="request",
                entity_id=record.id,
                request_id=record.id,
                description=description,
                changes=changes,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Audit log creation failed for {record.id}: {str(e)}")


# Create singleton instance
approval_service = ApprovalService()
