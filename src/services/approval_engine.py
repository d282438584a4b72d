"""
Approval Engine
Sequential manager -> general manager -> HRD/finance approval rules

Every function here is pure: it reads a RequestRecord and an acting user and
returns a decision or a new record. Persisting the result is the caller's job.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from src.models.request import RequestStatus, StepRole, StepStatus
from src.models.user import UserRole
from src.schemas.request import ApprovalStep, RequestRecord, ActingUser
from src.utils.exceptions import AuthorizationError, InvalidStateError


# Statuses at which each role holds the pending step
ACTIONABLE_STATUSES = {
    UserRole.MANAGER: (RequestStatus.DRAFT, RequestStatus.PENDING),
    UserRole.GENERAL_MANAGER: (RequestStatus.MANAGER_APPROVED,),
    UserRole.HRD: (RequestStatus.GM_APPROVED,),
    UserRole.FINANCE: (RequestStatus.GM_APPROVED,),
}

# Status reached when the role approves
APPROVED_NEXT_STATUS = {
    UserRole.MANAGER: RequestStatus.MANAGER_APPROVED,
    UserRole.GENERAL_MANAGER: RequestStatus.GM_APPROVED,
    UserRole.HRD: RequestStatus.APPROVED,
    UserRole.FINANCE: RequestStatus.APPROVED,
}

# Roles that may only act on requests of their own department
DEPARTMENT_SCOPED_ROLES = {UserRole.MANAGER}

TERMINAL_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED)

DECISIONS = (StepStatus.APPROVED, StepStatus.REJECTED)

# Roles allowed to act on each step of the flow; hrd and finance share the last step
STEP_ACTORS = {
    StepRole.MANAGER: (UserRole.MANAGER,),
    StepRole.GENERAL_MANAGER: (UserRole.GENERAL_MANAGER,),
    StepRole.HRD: (UserRole.HRD, UserRole.FINANCE),
    StepRole.FINANCE: (UserRole.HRD, UserRole.FINANCE),
}


def _role(user: ActingUser) -> Optional[UserRole]:
    try:
        return UserRole(user.role)
    except ValueError:
        return None


def default_approval_flow(department_id: Optional[str]) -> List[ApprovalStep]:
    """Canonical chain used by every request type"""
    return [
        ApprovalStep(role=StepRole.MANAGER, department_id=department_id, status=StepStatus.PENDING),
        ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.PENDING),
        ApprovalStep(role=StepRole.HRD, status=StepStatus.PENDING),
    ]


def resolve_approval_flow(request: RequestRecord) -> List[ApprovalStep]:
    """
    Return the request's approval flow, synthesising the default when missing

    Documents stored before flows existed carry an empty list, so this runs on
    every read and every decision. A non-empty flow is never regenerated.

    Args:
        request: Stored request

    Returns:
        List[ApprovalStep]: New list; the record's own list is left untouched
    """
    if request.approval_flow:
        return list(request.approval_flow)
    return default_approval_flow(request.department_id)


def current_step_index(flow: Sequence[ApprovalStep]) -> int:
    """
    Index of the first pending step

    Returns 0 when nothing is pending; callers that need to tell the two
    apart use has_pending_step().
    """
    for index, step in enumerate(flow):
        if step.status == StepStatus.PENDING:
            return index
    return 0


def has_pending_step(flow: Sequence[ApprovalStep]) -> bool:
    return any(step.status == StepStatus.PENDING for step in flow)


def can_act(request: RequestRecord, user: ActingUser) -> bool:
    """
    Whether the user may approve or reject the request in its current state

    Args:
        request: Request as currently stored
        user: Acting user

    Returns:
        bool: True only for the role holding the current step
    """
    role = _role(user)
    if role not in ACTIONABLE_STATUSES:
        return False

    if request.status not in ACTIONABLE_STATUSES[role]:
        return False

    if role in DEPARTMENT_SCOPED_ROLES:
        return bool(request.department_id) and request.department_id == user.department_id

    return True


def is_visible_to(request: RequestRecord, user: ActingUser) -> bool:
    """
    Whether the request shows up in the user's approval list

    Admins see everything, managers their department, general managers and
    hrd/finance the requests waiting at their level, everyone else their own.
    """
    role = _role(user)
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.MANAGER:
        return bool(request.department_id) and request.department_id == user.department_id
    if role == UserRole.GENERAL_MANAGER:
        return request.status == RequestStatus.MANAGER_APPROVED
    if role in (UserRole.HRD, UserRole.FINANCE):
        return request.status == RequestStatus.GM_APPROVED
    return request.requester_id == user.id


def next_status(role: UserRole, action: StepStatus) -> RequestStatus:
    """Overall status after the role decides"""
    if action == StepStatus.REJECTED:
        return RequestStatus.REJECTED
    return APPROVED_NEXT_STATUS[role]


def apply_decision(
    request: RequestRecord,
    user: ActingUser,
    action: str,
    comment: Optional[str] = None,
    now: Optional[datetime] = None
) -> RequestRecord:
    """
    Record an approve/reject decision on the current pending step

    Args:
        request: Request as currently stored
        user: Acting user
        action: "approved" or "rejected"
        comment: Optional decision comment
        now: Decision time, defaults to utcnow

    Returns:
        RequestRecord: New record with the updated flow, status and updated_at

    Raises:
        InvalidStateError: Request is terminal or has no pending step
        AuthorizationError: Unsupported action, or the user may not act now
    """
    if request.status in TERMINAL_STATUSES:
        raise InvalidStateError(
            f"Request {request.id} is already {request.status.value}",
            request_id=request.id
        )

    flow = resolve_approval_flow(request)

    if not has_pending_step(flow):
        raise InvalidStateError(
            f"Request {request.id} has no pending approval step",
            request_id=request.id
        )

    try:
        decision = StepStatus(action)
    except ValueError:
        raise AuthorizationError(f"Unsupported action: {action}", request_id=request.id)

    if decision not in DECISIONS or not can_act(request, user):
        raise AuthorizationError(
            f"User {user.id} ({user.role}) is not authorized to act on request {request.id}",
            request_id=request.id
        )

    now = now or datetime.utcnow()
    index = current_step_index(flow)
    flow[index] = flow[index].model_copy(update={
        "status": decision,
        "decided_at": now,
        "decided_by_user_id": user.id,
        "decided_by_name": user.display_name,
        "comment": comment,
    })

    return request.model_copy(update={
        "approval_flow": flow,
        "status": next_status(UserRole(user.role), decision),
        "updated_at": now,
    })


def final_status(flow: Sequence[ApprovalStep]) -> str:
    """Status of the last decided step, "pending" if nothing was decided"""
    for step in reversed(flow):
        if step.status != StepStatus.PENDING:
            return step.status.value
    return StepStatus.PENDING.value


def next_step_role(request: RequestRecord) -> Optional[StepRole]:
    """Role owning the current pending step, None once the request is terminal"""
    if request.status in TERMINAL_STATUSES:
        return None
    flow = resolve_approval_flow(request)
    if not has_pending_step(flow):
        return None
    return flow[current_step_index(flow)].role
