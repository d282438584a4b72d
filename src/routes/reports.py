"""
Reports Routes
Recapitulation, Excel export, statistics and audit log endpoints
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.services.directory_service import to_acting_user
from src.services.recap_service import recap_service
from src.models.user import User
from src.models.request import RequestType
from src.models.audit_log import AuditLog
from src.utils.helpers import parse_date_range
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/recapitulation/{request_type}")
async def get_recapitulation(
    request_type: RequestType,
    start_date: Optional[date] = Query(None, description="From date (YYYY-MM-DD), inclusive"),
    end_date: Optional[date] = Query(None, description="To date (YYYY-MM-DD), inclusive"),
    department_id: Optional[str] = Query(None, description="Filter by department"),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("view_recapitulation"))
):
    """
    Recapitulation of one form type

    Managers only get their own department whatever department_id says.
    Each row carries final_status, the outcome of the last decided step.
    """
    created_from, created_to = parse_date_range(start_date, end_date)
    rows = recap_service.recapitulation(
        db, to_acting_user(current_user), request_type, created_from, created_to, department_id
    )
    return {
        "success": True,
        "type": request_type.value,
        "count": len(rows),
        "requests": rows,
    }


@router.get("/recapitulation/{request_type}/export")
async def export_recapitulation(
    request_type: RequestType,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("view_recapitulation"))
):
    """
    Download the recapitulation as an Excel workbook
    """
    created_from, created_to = parse_date_range(start_date, end_date)
    rows = recap_service.recapitulation(
        db, to_acting_user(current_user), request_type, created_from, created_to, department_id
    )
    content = recap_service.export_xlsx(request_type, rows)
    filename = f"recap_{request_type.value}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"

    logger.info(f"{current_user.username} exported {len(rows)} {request_type.value} request(s)")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/statistics")
async def get_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("view_recapitulation"))
):
    """
    Request statistics

    **Returns:**
    - Total request count
    - Breakdown by status
    - Breakdown by type
    """
    return {"success": True, **recap_service.statistics(db, to_acting_user(current_user))}


@router.get("/audit-logs")
async def get_audit_logs(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    request_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_role("admin"))
):
    """
    Get audit logs (Admin only)

    **Parameters:**
    - user_id: Filter by user ID
    - action: Filter by action type
    - request_id: Filter by request
    """
    query = db.query(AuditLog)

    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if request_id:
        query = query.filter(AuditLog.request_id == request_id)

    total = query.count()
    logs = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()

    return {
        "success": True,
        "total": total,
        "logs": [
            {
                "id": log.id,
                "user_id": log.user_id,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "request_id": log.request_id,
                "description": log.description,
                "changes": log.changes,
                "created_at": log.created_at.isoformat() if log.created_at else None,
            }
            for log in logs
        ]
    }
