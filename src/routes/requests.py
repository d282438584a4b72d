"""
Request Routes
Form submission, attachments, history and dashboard endpoints
"""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typing import Optional

from src.config.database import get_db
from src.models.department import Department
from src.models.user import User
from src.schemas.request import PAYLOAD_SCHEMAS, RequestCreate
from src.services.approval_service import approval_service
from src.services.auth_service import auth_service
from src.services.directory_service import directory_service, to_acting_user
from src.utils.file_handler import save_attachment
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_request(
    request_data: RequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("submit_request"))
):
    """
    Submit a new form

    The payload is validated against the schema of its type. The request is
    filed under the given department or, by default, the requester's own.
    """
    try:
        payload = PAYLOAD_SCHEMAS[request_data.type].model_validate(request_data.payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        )

    department_id = request_data.department_id or current_user.department_id
    if not department_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are not assigned to a department. Contact your administrator."
        )
    if not db.query(Department).filter(Department.id == department_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Department {department_id} does not exist"
        )

    approval_flow = list(request_data.approval_flow)
    if approval_flow:
        manager_step = approval_flow[0]
        if manager_step.department_id and manager_step.department_id != department_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="The manager step must belong to the request's department"
            )
        approval_flow[0] = manager_step.model_copy(update={"department_id": department_id})

    record = approval_service.submit_request(
        db,
        requester=current_user,
        request_type=request_data.type,
        payload=payload.model_dump(mode="json"),
        department_id=department_id,
        approval_flow=approval_flow,
    )

    logger.info(f"✅ {current_user.username} submitted {record.type.value} request {record.id}")
    return {
        "success": True,
        "message": "Request submitted successfully",
        "request": approval_service.build_response(db, record, to_acting_user(current_user)),
    }


@router.post("/attachments", status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Upload a medical certificate, receipt or item photo

    Returns the URL to put into the form payload.
    """
    url, file_name = save_attachment(file, current_user.id)
    return {"success": True, "url": url, "file_name": file_name}


@router.get("/my-requests")
async def get_my_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Requests submitted by the current user, newest first"""
    acting = to_acting_user(current_user)
    records = approval_service.my_requests(db, acting)
    names = directory_service.department_names(db)
    return {
        "success": True,
        "count": len(records),
        "requests": [approval_service.build_response(db, r, acting, names) for r in records],
    }


@router.get("/history")
async def get_history(
    q: Optional[str] = Query(None, description="Search by form type, requester name or form id"),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Request history

    Staff see their own requests; every other role sees all requests.
    """
    acting = to_acting_user(current_user)
    records = approval_service.history(db, acting, q)
    names = directory_service.department_names(db)
    return {
        "success": True,
        "count": len(records),
        "requests": [approval_service.build_response(db, r, acting, names) for r in records],
    }


@router.get("/dashboard")
async def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Monthly counters, approval workload and latest requests"""
    acting = to_acting_user(current_user)
    summary = approval_service.dashboard(db, acting)
    names = directory_service.department_names(db)
    summary["recent"] = [approval_service.build_response(db, r, acting, names) for r in summary["recent"]]
    return {"success": True, **summary}


@router.get("/{request_id}")
async def get_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Request detail with its resolved approval flow

    Returns 404 for requests the user is not allowed to see.
    """
    acting = to_acting_user(current_user)
    record = approval_service.get_viewable_request(db, request_id, acting)
    return {"success": True, "request": approval_service.build_response(db, record, acting)}
