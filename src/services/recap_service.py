"""
Recapitulation Service
Per-type request recaps, Excel export and workflow statistics
"""

from collections import Counter
from datetime import datetime
from io import BytesIO
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from sqlalchemy.orm import Session

from src.models.request import RequestType
from src.schemas.request import ActingUser
from src.services import approval_engine
from src.services.directory_service import directory_service
from src.services.request_store import RequestFilter, request_store
from src.utils.helpers import format_datetime, humanize
from src.utils.logger import setup_logger

logger = setup_logger()

BASE_COLUMNS = ["Form ID", "Submitted At", "Requester", "Department", "Status", "Final Status"]

# Entry fields exported per request type, in column order
ENTRY_COLUMNS = {
    RequestType.OVERTIME: ["employee_number", "employee_name", "date", "start_time", "end_time", "break_time", "total_hours"],
    RequestType.LEAVE: ["employee_number", "employee_name", "start_date", "end_date", "total_days", "half_day_type"],
    RequestType.SICK_LEAVE: ["employee_number", "employee_name", "start_date", "end_date", "total_days"],
    RequestType.MISSED_PUNCH: ["employee_number", "employee_name", "date", "punch_type", "time", "reason"],
    RequestType.PURCHASE: ["item_code", "name", "specification", "qty", "unit", "reason", "remarks"],
    RequestType.PAYMENT: ["name", "price", "description"],
}

# Top-level payload fields for types without entries
PAYLOAD_COLUMNS = {
    RequestType.LABOR: ["position", "headcount", "required_date", "reason", "main_duties"],
    RequestType.RESIGN: ["employee_name", "employee_number", "resignation_date", "reason"],
    RequestType.PERMISSION_TO_LEAVE: ["purpose", "permission_kind", "start_time", "end_time", "uses_vehicle"],
}


def _entry_rows(payload: dict) -> List[dict]:
    """Flatten the repeated part of a payload into one dict per row"""
    rows = payload.get("entries") or payload.get("items") or []
    flattened = []
    for row in rows:
        row = dict(row)
        employee = row.pop("employee", None) or {}
        row["employee_number"] = employee.get("employee_number")
        row["employee_name"] = employee.get("name")
        flattened.append(row)
    return flattened


class RecapService:
    """Builds recapitulation rows from the request store"""

    def recapitulation(
        self,
        db: Session,
        user: ActingUser,
        request_type: RequestType,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        department_id: Optional[str] = None
    ) -> List[dict]:
        """
        Requests of one type with their final step outcome

        Args:
            db: Database session
            user: Acting user; managers only ever see their own department
            request_type: Form type
            created_from: Inclusive lower bound on created_at
            created_to: Inclusive upper bound on created_at
            department_id: Optional department filter

        Returns:
            List[dict]: One row per request, newest first
        """
        if user.role == "manager":
            department_id = user.department_id or ""

        records = request_store.query(db, RequestFilter(
            type=request_type,
            department_id=department_id,
            created_from=created_from,
            created_to=created_to,
        ))
        department_names = directory_service.department_names(db)

        rows = []
        for record in records:
            flow = approval_engine.resolve_approval_flow(record)
            rows.append({
                "id": record.id,
                "type": record.type.value,
                "requester_id": record.requester_id,
                "requester_name": record.requester_name,
                "department_id": record.department_id,
                "department_name": department_names.get(record.department_id, record.department_id),
                "status": record.status.value,
                "final_status": approval_engine.final_status(flow),
                "approval_flow": [step.model_dump(mode="json") for step in flow],
                "payload": record.payload,
                "created_at": record.created_at,
                "updated_at": record.updated_at,
            })

        logger.info(f"Recap {request_type.value} for {user.display_name}: {len(rows)} request(s)")
        return rows

    def export_xlsx(self, request_type: RequestType, rows: List[dict]) -> bytes:
        """
        Render recap rows as an Excel workbook

        Requests with repeated entries produce one sheet row per entry.

        Returns:
            bytes: xlsx file content
        """
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = humanize(request_type).title()[:31]

        entry_columns = ENTRY_COLUMNS.get(request_type, [])
        payload_columns = PAYLOAD_COLUMNS.get(request_type, [])
        extra_columns = entry_columns or payload_columns

        sheet.append(BASE_COLUMNS + [humanize(column).title() for column in extra_columns])
        for cell in sheet[1]:
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = PatternFill("solid", fgColor="4CAF50")

        for row in rows:
            base = [
                row["id"],
                format_datetime(row["created_at"]) if row["created_at"] else "",
                row["requester_name"],
                row["department_name"] or "",
                humanize(row["status"]),
                humanize(row["final_status"]),
            ]
            entries = _entry_rows(row["payload"]) if entry_columns else []
            if entries:
                for entry in entries:
                    sheet.append(base + [_cell(entry.get(column)) for column in entry_columns])
            else:
                sheet.append(base + [_cell(row["payload"].get(column)) for column in payload_columns])

        for column_cells in sheet.columns:
            width = max(len(str(cell.value or "")) for cell in column_cells)
            sheet.column_dimensions[column_cells[0].column_letter].width = min(width + 2, 50)

        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def statistics(self, db: Session, user: ActingUser) -> dict:
        """Counts by status and type over the requests visible to the user"""
        if user.role == "manager":
            records = request_store.query(db, RequestFilter(department_id=user.department_id or ""))
        else:
            records = request_store.query(db)

        by_status = Counter(record.status.value for record in records)
        by_type = Counter(record.type.value for record in records)
        return {
            "total_requests": len(records),
            "by_status": [{"status": key, "count": count} for key, count in sorted(by_status.items())],
            "by_type": [{"type": key, "count": count} for key, count in sorted(by_type.items())],
        }


def _cell(value):
    if isinstance(value, (list, dict)):
        return ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
    return value


# Create singleton instance
recap_service = RecapService()
