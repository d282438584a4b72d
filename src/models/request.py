"""
Approval Request Model
Represents HR request forms submitted by employees
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class RequestType(str, enum.Enum):
    """Request form types"""
    OVERTIME = "overtime"
    LEAVE = "leave"
    SICK_LEAVE = "sick_leave"
    MISSED_PUNCH = "missed_punch"
    LABOR = "labor"
    PURCHASE = "purchase"
    PAYMENT = "payment"
    RESIGN = "resign"
    PERMISSION_TO_LEAVE = "permission_to_leave"


class RequestStatus(str, enum.Enum):
    """Overall request status, derived from the approval flow"""
    DRAFT = "draft"
    PENDING = "pending"
    MANAGER_APPROVED = "manager_approved"
    GM_APPROVED = "gm_approved"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepRole(str, enum.Enum):
    """Roles that can own an approval step"""
    MANAGER = "manager"
    GENERAL_MANAGER = "general_manager"
    HRD = "hrd"
    FINANCE = "finance"


class StepStatus(str, enum.Enum):
    """Approval step status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Step roles accepted at each position of a submitted flow; the status
# table only advances manager -> general manager -> hrd/finance
FLOW_STEP_ROLES = (
    (StepRole.MANAGER,),
    (StepRole.GENERAL_MANAGER,),
    (StepRole.HRD, StepRole.FINANCE),
)


# Id prefix per form type
REQUEST_ID_PREFIXES = {
    RequestType.OVERTIME: "overtime",
    RequestType.LEAVE: "cuti",
    RequestType.SICK_LEAVE: "sakit",
    RequestType.MISSED_PUNCH: "missedpunch",
    RequestType.LABOR: "lr",
    RequestType.PURCHASE: "pr",
    RequestType.PAYMENT: "reimburse",
    RequestType.RESIGN: "resign",
    RequestType.PERMISSION_TO_LEAVE: "keluar",
}

# Overtime forms are saved as drafts, everything else goes straight to pending
INITIAL_STATUS = {
    RequestType.OVERTIME: RequestStatus.DRAFT,
}

# Spellings found in older documents
LEGACY_TYPE_ALIASES = {
    "missedpunch": RequestType.MISSED_PUNCH,
    "permission-to-leave": RequestType.PERMISSION_TO_LEAVE,
    "cuti": RequestType.LEAVE,
    "sakit": RequestType.SICK_LEAVE,
    "keluar": RequestType.PERMISSION_TO_LEAVE,
}


def normalize_request_type(value: str) -> RequestType:
    """
    Map a stored type string to a RequestType

    Raises:
        ValueError: If the value is not a known type or legacy alias
    """
    if isinstance(value, RequestType):
        return value
    if value in LEGACY_TYPE_ALIASES:
        return LEGACY_TYPE_ALIASES[value]
    return RequestType(value)


class ApprovalRequest(Base):
    """Approval request model"""
    __tablename__ = "requests"

    id = Column(String(64), primary_key=True, index=True)
    type = Column(String(32), nullable=False, index=True)

    # Requester
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    requester_name = Column(String, nullable=False)
    department_id = Column(String(50), ForeignKey("departments.id"), nullable=True, index=True)

    # Workflow; status is only ever written together with approval_flow
    status = Column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True)
    approval_flow = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)

    # Type-specific form fields
    payload = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    requester = relationship("User", foreign_keys=[requester_id])
    department = relationship("Department")

    def __repr__(self):
        return f"<ApprovalRequest {self.id} - {self.type} - {self.status.value}>"
