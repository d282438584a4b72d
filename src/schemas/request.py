"""
Request Schemas
Pydantic models for approval steps, request records and form payloads
"""

from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from typing import Optional, List, Dict, Any, Type
from datetime import datetime

from src.config.settings import settings
from src.models.request import FLOW_STEP_ROLES, RequestType, RequestStatus, StepRole, StepStatus


# ============================================
# WORKFLOW RECORDS
# ============================================

class ApprovalStep(BaseModel):
    """One stage of a request's approval chain"""
    role: StepRole
    department_id: Optional[str] = None
    status: StepStatus = StepStatus.PENDING
    decided_at: Optional[datetime] = None
    decided_by_user_id: Optional[int] = None
    decided_by_name: Optional[str] = None
    comment: Optional[str] = None

    model_config = {"frozen": True}


class RequestRecord(BaseModel):
    """
    Snapshot of a stored request

    The approval engine only ever returns new records built from this one;
    it never mutates an instance in place.
    """
    id: str
    type: RequestType
    requester_id: int
    requester_name: str
    department_id: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    approval_flow: List[ApprovalStep] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    model_config = {"frozen": True}


class ActingUser(BaseModel):
    """Identity of whoever views or decides on a request"""
    id: int
    display_name: str
    role: str
    department_id: Optional[str] = None


# ============================================
# FORM PAYLOADS
# ============================================

class EmployeeRef(BaseModel):
    """Employee listed on a multi-employee form"""
    id: Optional[str] = None
    employee_number: str
    name: str
    department: Optional[str] = None


class OvertimeEntry(BaseModel):
    employee: EmployeeRef
    date: str
    start_time: str
    end_time: str
    break_time: float = 0
    total_hours: float = Field(..., ge=0)


class OvertimePayload(BaseModel):
    """Overtime form"""
    reason: str = Field(..., min_length=1)
    submission_kind: str = "self"  # self | others
    entries: List[OvertimeEntry] = Field(..., min_length=1)


class LeaveEntry(BaseModel):
    employee: EmployeeRef
    start_date: str
    end_date: str
    total_days: float = Field(..., gt=0)
    half_day_type: Optional[str] = None


class LeavePayload(BaseModel):
    """Annual leave (cuti) form"""
    leave_type: str
    reason: str = Field(..., min_length=1)
    submission_kind: str = "self"
    entries: List[LeaveEntry] = Field(..., min_length=1)


class SickLeaveEntry(BaseModel):
    employee: EmployeeRef
    start_date: str
    end_date: str
    total_days: float = Field(..., gt=0)
    medical_certificate_url: Optional[str] = None


class SickLeavePayload(BaseModel):
    """Sick leave (sakit) form"""
    reason: Optional[str] = None
    entries: List[SickLeaveEntry] = Field(..., min_length=1)


class MissedPunchEntry(BaseModel):
    employee: EmployeeRef
    date: str
    punch_type: str  # in | out
    time: str
    reason: Optional[str] = None


class MissedPunchPayload(BaseModel):
    """Missed punch form"""
    reason: str = Field(..., min_length=1)
    entries: List[MissedPunchEntry] = Field(..., min_length=1)


class LaborPayload(BaseModel):
    """Labor (manpower) request form"""
    required_date: str
    headcount: int = Field(..., gt=0)
    gender: List[str] = Field(default_factory=list)
    max_age: Optional[int] = Field(None, gt=0)
    reason: str
    other_reason: Optional[str] = None
    position: str
    main_duties: str
    languages: List[str] = Field(default_factory=list)
    other_requirements: Optional[str] = None


class PurchaseItem(BaseModel):
    item_code: Optional[str] = None
    name: str
    specification: Optional[str] = None
    qty: float = Field(..., gt=0)
    unit: str
    reason: Optional[str] = None
    remarks: Optional[str] = None
    photo_url: Optional[str] = None


class PurchasePayload(BaseModel):
    """Purchase request form"""
    request_date: str
    items: List[PurchaseItem] = Field(..., min_length=1)


class ReimbursementItem(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    description: Optional[str] = None


class PaymentPayload(BaseModel):
    """Payment / reimbursement form"""
    items: List[ReimbursementItem] = Field(..., min_length=1)
    total_price: Optional[float] = None
    bank_name: str
    account_number: str
    account_holder: str
    receipt_urls: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_total_price(self):
        if self.total_price is None:
            self.total_price = sum(item.price for item in self.items)
        return self


class ResignPayload(BaseModel):
    """Resignation form"""
    employee_name: str
    employee_number: str
    resignation_date: str
    reason: str = Field(..., min_length=1)


class Colleague(BaseModel):
    name: str
    employee_number: str
    department: Optional[str] = None


class PermissionToLeavePayload(BaseModel):
    """Permission to leave the premises (keluar) form"""
    purpose: str
    explanation: Optional[str] = None
    permission_kind: str
    start_time: str
    end_time: Optional[str] = None
    uses_vehicle: bool = False
    driver_name: Optional[str] = None
    plate_number: Optional[str] = None
    brings_colleagues: bool = False
    colleagues: List[Colleague] = Field(default_factory=list)


PAYLOAD_SCHEMAS: Dict[RequestType, Type[BaseModel]] = {
    RequestType.OVERTIME: OvertimePayload,
    RequestType.LEAVE: LeavePayload,
    RequestType.SICK_LEAVE: SickLeavePayload,
    RequestType.MISSED_PUNCH: MissedPunchPayload,
    RequestType.LABOR: LaborPayload,
    RequestType.PURCHASE: PurchasePayload,
    RequestType.PAYMENT: PaymentPayload,
    RequestType.RESIGN: ResignPayload,
    RequestType.PERMISSION_TO_LEAVE: PermissionToLeavePayload,
}


# ============================================
# API REQUEST / RESPONSE
# ============================================

class RequestCreate(BaseModel):
    """Schema for submitting a request"""
    type: RequestType
    payload: Dict[str, Any]
    department_id: Optional[str] = None
    approval_flow: List[ApprovalStep] = Field(default_factory=list)

    @field_validator("approval_flow")
    @classmethod
    def flow_must_be_undecided_chain(cls, flow: List[ApprovalStep]) -> List[ApprovalStep]:
        """
        A submitted flow may relabel the chain, never skip or pre-decide it

        Empty means the default chain. Otherwise it needs exactly one step per
        position of FLOW_STEP_ROLES, all pending and with no decision fields.
        """
        if not flow:
            return flow

        if len(flow) != len(FLOW_STEP_ROLES):
            raise ValueError(
                "approval_flow must have manager, general_manager and hrd/finance steps in that order"
            )

        for index, (step, allowed) in enumerate(zip(flow, FLOW_STEP_ROLES)):
            if step.role not in allowed:
                raise ValueError(
                    f"Step {index} must have role {' or '.join(role.value for role in allowed)}, not {step.role.value}"
                )
            if step.status != StepStatus.PENDING:
                raise ValueError(f"Step {index} must be pending when submitted")
            if step.decided_at or step.decided_by_user_id is not None or step.decided_by_name or step.comment:
                raise ValueError(f"Step {index} must not carry decision details when submitted")
        return flow


class DecisionCreate(BaseModel):
    """Schema for approving or rejecting a request"""
    comment: Optional[str] = Field(None, max_length=2000)


class RequestResponse(BaseModel):
    """Request as returned by the API, with its resolved flow"""
    id: str
    type: RequestType
    requester_id: int
    requester_name: str
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    status: RequestStatus
    approval_flow: List[ApprovalStep]
    current_step_index: int
    can_act: bool = False
    payload: Dict[str, Any]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int


class BroadcastEmails(BaseModel):
    """Broadcast email lists notified when a request is fully approved"""
    hrd: List[EmailStr] = Field(default_factory=list)
    finance: List[EmailStr] = Field(default_factory=list)
    general_manager: List[EmailStr] = Field(default_factory=list)
    managers: Dict[str, List[EmailStr]] = Field(default_factory=dict)

    @field_validator("hrd", "finance", "general_manager", mode="before")
    @classmethod
    def drop_blank_emails(cls, value):
        return _clean_email_list(value)

    @field_validator("managers", mode="before")
    @classmethod
    def drop_blank_manager_emails(cls, value):
        if not value:
            return {}
        return {dept_id: _clean_email_list(emails) for dept_id, emails in value.items()}


def _clean_email_list(value) -> List[str]:
    """Strip entries, drop blanks and enforce the per-list limit"""
    if not value:
        return []
    emails = [str(email).strip() for email in value if email and str(email).strip()]
    if len(emails) > settings.MAX_BROADCAST_EMAILS:
        raise ValueError(f"At most {settings.MAX_BROADCAST_EMAILS} addresses per list")
    return emails
