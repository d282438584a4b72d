"""
Request Store
Persists approval requests and converts between ORM rows and RequestRecord
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.request import (
    ApprovalRequest,
    RequestStatus,
    RequestType,
    REQUEST_ID_PREFIXES,
    LEGACY_TYPE_ALIASES,
    normalize_request_type,
)
from src.models.user import UserRole
from src.schemas.request import ApprovalStep, RequestRecord, ActingUser
from src.utils.exceptions import ConflictError, RequestNotFoundError, StoreWriteError
from src.utils.logger import setup_logger

logger = setup_logger()


@dataclass
class RequestFilter:
    """Equality filters supported by RequestStore.query"""
    department_id: Optional[str] = None
    status: Optional[RequestStatus] = None
    requester_id: Optional[int] = None
    type: Optional[RequestType] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @classmethod
    def for_user(cls, user: ActingUser) -> "RequestFilter":
        """
        Filter matching the requests visible to a user

        Mirrors approval_engine.is_visible_to so the database does the work.
        """
        role = user.role
        if role == UserRole.ADMIN.value:
            return cls()
        if role == UserRole.MANAGER.value:
            # A manager without a department sees nothing
            return cls(department_id=user.department_id or "")
        if role == UserRole.GENERAL_MANAGER.value:
            return cls(status=RequestStatus.MANAGER_APPROVED)
        if role in (UserRole.HRD.value, UserRole.FINANCE.value):
            return cls(status=RequestStatus.GM_APPROVED)
        return cls(requester_id=user.id)


def to_record(row: ApprovalRequest) -> RequestRecord:
    """Build an immutable record from an ORM row"""
    return RequestRecord(
        id=row.id,
        type=normalize_request_type(row.type),
        requester_id=row.requester_id,
        requester_name=row.requester_name,
        department_id=row.department_id,
        status=row.status or RequestStatus.DRAFT,
        approval_flow=[ApprovalStep.model_validate(step) for step in (row.approval_flow or [])],
        payload=row.payload or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version or 1,
    )


def _dump_flow(flow: List[ApprovalStep]) -> list:
    return [step.model_dump(mode="json") for step in flow]


class RequestStore:
    """SQLAlchemy-backed request store"""

    def generate_id(self, db: Session, request_type: RequestType, now: Optional[datetime] = None) -> str:
        """
        Generate a timestamp-derived id, unique within the store

        Args:
            db: Database session
            request_type: Type whose prefix is used
            now: Creation time

        Returns:
            str: Id in format <prefix>-<epoch milliseconds>
        """
        prefix = REQUEST_ID_PREFIXES[request_type]
        millis = int((now or datetime.utcnow()).timestamp() * 1000)
        candidate = f"{prefix}-{millis}"
        while db.query(ApprovalRequest.id).filter(ApprovalRequest.id == candidate).first():
            millis += 1
            candidate = f"{prefix}-{millis}"
        return candidate

    def create(
        self,
        db: Session,
        request_type: RequestType,
        requester_id: int,
        requester_name: str,
        department_id: Optional[str],
        status: RequestStatus,
        payload: dict,
        approval_flow: Optional[List[ApprovalStep]] = None
    ) -> RequestRecord:
        """
        Insert a new request

        Raises:
            StoreWriteError: If the insert fails
        """
        now = datetime.utcnow()
        row = ApprovalRequest(
            id=self.generate_id(db, request_type, now),
            type=request_type.value,
            requester_id=requester_id,
            requester_name=requester_name,
            department_id=department_id,
            status=status,
            approval_flow=_dump_flow(approval_flow or []),
            payload=payload,
            version=1,
            created_at=now,
            updated_at=now,
        )
        try:
            db.add(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create {request_type.value} request: {str(e)}")
            raise StoreWriteError("Failed to save request")

        db.refresh(row)
        logger.info(f"Request {row.id} created by user {requester_id} ({status.value})")
        return to_record(row)

    def get(self, db: Session, request_id: str) -> RequestRecord:
        """
        Load a request by id

        Raises:
            RequestNotFoundError: If no request has this id
        """
        row = db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first()
        if not row:
            raise RequestNotFoundError(f"Request {request_id} not found", request_id=request_id)
        return to_record(row)

    def update(self, db: Session, record: RequestRecord, expected_version: int) -> RequestRecord:
        """
        Write status, flow and updated_at if nobody else wrote in between

        The three fields and the version bump go out in a single UPDATE, so a
        decision is either fully stored or not at all.

        Args:
            db: Database session
            record: Record produced by the approval engine
            expected_version: Version the decision was computed from

        Returns:
            RequestRecord: Stored record with the new version

        Raises:
            ConflictError: If the stored version moved on
            StoreWriteError: If the database write fails
        """
        try:
            updated = db.query(ApprovalRequest).filter(
                ApprovalRequest.id == record.id,
                ApprovalRequest.version == expected_version
            ).update(
                {
                    ApprovalRequest.status: record.status,
                    ApprovalRequest.approval_flow: _dump_flow(record.approval_flow),
                    ApprovalRequest.updated_at: record.updated_at or datetime.utcnow(),
                    ApprovalRequest.version: expected_version + 1,
                },
                synchronize_session=False
            )
            if updated == 0:
                db.rollback()
                exists = db.query(ApprovalRequest.id).filter(ApprovalRequest.id == record.id).first()
                if not exists:
                    raise RequestNotFoundError(f"Request {record.id} not found", request_id=record.id)
                logger.warning(f"Version conflict on request {record.id} (expected v{expected_version})")
                raise ConflictError(
                    f"Request {record.id} was changed by someone else. Reload and try again.",
                    request_id=record.id
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update request {record.id}: {str(e)}")
            raise StoreWriteError(f"Failed to save decision on request {record.id}", request_id=record.id)

        db.expire_all()
        return self.get(db, record.id)

    def query(
        self,
        db: Session,
        request_filter: Optional[RequestFilter] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[RequestRecord]:
        """
        List requests matching the filter, newest first

        Args:
            db: Database session
            request_filter: Equality/range filters
            skip: Number of records to skip
            limit: Maximum number of records to return
        """
        request_filter = request_filter or RequestFilter()
        query = db.query(ApprovalRequest)

        if request_filter.department_id is not None:
            query = query.filter(ApprovalRequest.department_id == request_filter.department_id)
        if request_filter.status is not None:
            query = query.filter(ApprovalRequest.status == request_filter.status)
        if request_filter.requester_id is not None:
            query = query.filter(ApprovalRequest.requester_id == request_filter.requester_id)
        if request_filter.type is not None:
            type_names = [request_filter.type.value] + [
                alias for alias, target in LEGACY_TYPE_ALIASES.items() if target == request_filter.type
            ]
            query = query.filter(ApprovalRequest.type.in_(type_names))
        if request_filter.created_from is not None:
            query = query.filter(ApprovalRequest.created_at >= request_filter.created_from)
        if request_filter.created_to is not None:
            query = query.filter(ApprovalRequest.created_at <= request_filter.created_to)

        query = query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        return [to_record(row) for row in query.all()]


# Create singleton instance
request_store = RequestStore()
