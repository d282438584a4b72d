"""
Approval Routes
Approval list and approve/reject endpoints
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from src.config.database import get_db
from src.models.user import User
from src.schemas.request import DecisionCreate
from src.services.approval_service import approval_service
from src.services.auth_service import auth_service
from src.services.directory_service import directory_service, to_acting_user
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.get("")
async def list_approvals(
    filter_status: str = Query("pending", description="pending (actionable by you), all, or a request status"),
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Requests on the current user's approval page

    Managers see their department, the general manager sees requests at
    manager_approved, hrd and finance see gm_approved, admins see everything.
    """
    acting = to_acting_user(current_user)
    records = approval_service.list_visible_requests(db, acting, filter_status, skip, limit)
    names = directory_service.department_names(db)

    logger.info(f"{current_user.username} ({acting.role}) viewing {len(records)} request(s) [{filter_status}]")
    return {
        "success": True,
        "count": len(records),
        "requests": [approval_service.build_response(db, r, acting, names) for r in records],
    }


@router.get("/pending")
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Requests the current user can approve or reject right now"""
    acting = to_acting_user(current_user)
    records = approval_service.list_actionable_requests(db, acting)
    names = directory_service.department_names(db)
    return {
        "success": True,
        "count": len(records),
        "requests": [approval_service.build_response(db, r, acting, names) for r in records],
    }


@router.post("/{request_id}/approve")
async def approve_request(
    request_id: str,
    decision: Optional[DecisionCreate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Approve the current step of a request

    **Errors:**
    - 403: You cannot act on this request now
    - 404: Request not found
    - 409: Nothing left to approve, or the request changed meanwhile
    """
    record = approval_service.apply_decision(db, request_id, current_user, "approved", decision.comment if decision else None)
    return {
        "success": True,
        "message": f"Request {record.id} approved",
        "request": approval_service.build_response(db, record, to_acting_user(current_user)),
    }


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: str,
    decision: Optional[DecisionCreate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Reject the current step of a request

    A rejection at any step ends the workflow.
    """
    record = approval_service.apply_decision(db, request_id, current_user, "rejected", decision.comment if decision else None)
    return {
        "success": True,
        "message": f"Request {record.id} rejected",
        "request": approval_service.build_response(db, record, to_acting_user(current_user)),
    }
