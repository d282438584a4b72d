"""
Admin Routes
User, department, employee and broadcast settings administration endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
import re

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.services.settings_service import settings_service
from src.models.audit_log import AuditLog
from src.models.department import Department
from src.models.employee import Employee
from src.models.request import ApprovalRequest, RequestStatus, normalize_request_type
from src.models.user import User, UserRole
from src.schemas.directory import (
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentManagerAssign,
    DepartmentResponse,
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeResponse,
)
from src.schemas.request import BroadcastEmails
from src.schemas.user import UserCreate, UserUpdate, UserResponse
from src.utils.logger import setup_logger, log_audit
from src.utils.security import get_password_hash

logger = setup_logger()
router = APIRouter()

require_admin = auth_service.require_role("admin")

# Roles allowed to head a department
DEPARTMENT_HEAD_ROLES = (UserRole.MANAGER, UserRole.GENERAL_MANAGER)


# ============================================
# HELPER FUNCTIONS
# ============================================

def _audit(db: Session, admin: User, action: str, entity_type: str, entity_id, description: str, changes: Optional[dict] = None):
    """Record an admin change; committed together with the change itself"""
    db.add(AuditLog(
        user_id=admin.id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        description=description,
        changes=changes
    ))
    log_audit(admin.id, action, description)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def _get_department_or_404(db: Session, department_id: str) -> Department:
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Department not found"
        )
    return department


def _check_department(db: Session, department_id: Optional[str]):
    if department_id and not db.query(Department).filter(Department.id == department_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Department {department_id} does not exist"
        )


def _department_id_from_name(name: str) -> str:
    """dept-<slug> id for departments created without an explicit id"""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"dept-{slug or 'unnamed'}"[:50]


def _department_response(db: Session, department: Department) -> DepartmentResponse:
    member_count = db.query(func.count(User.id)).filter(User.department_id == department.id).scalar()
    return DepartmentResponse(
        id=department.id,
        name=department.name,
        manager_id=department.manager_id,
        manager_name=department.manager.display_name if department.manager else None,
        member_count=member_count or 0,
        created_at=department.created_at,
    )


# ============================================
# USERS
# ============================================

@router.get("/users", response_model=List[UserResponse])
async def get_all_users(
    is_active: Optional[bool] = None,
    role: Optional[str] = None,
    department_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Get all users (Admin only)

    **Filters:**
    - is_active: Filter by active status
    - role: Filter by role (staff, manager, general_manager, hrd, finance, admin)
    - department_id: Filter by department
    """
    query = db.query(User)

    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    if role:
        try:
            query = query.filter(User.role == UserRole(role.lower()))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown role: {role}"
            )

    if department_id:
        query = query.filter(User.department_id == department_id)

    users = query.order_by(User.id).offset(skip).limit(limit).all()
    logger.info(f"Admin {current_user.username} retrieved {len(users)} users")
    return users


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a user with any role (Admin only)"""
    if db.query(User).filter(
        (User.email == user_data.email) | (User.username == user_data.username)
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or username already registered"
        )
    if user_data.employee_number and db.query(User).filter(
        User.employee_number == user_data.employee_number
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee number already registered"
        )
    _check_department(db, user_data.department_id)

    user = User(
        email=user_data.email,
        username=user_data.username,
        full_name=user_data.full_name,
        employee_number=user_data.employee_number,
        position=user_data.position,
        department_id=user_data.department_id,
        phone=user_data.phone,
        role=UserRole(user_data.role.value),
        hashed_password=get_password_hash(user_data.password),
        is_active=True
    )
    db.add(user)
    db.flush()
    _audit(db, current_user, "create_user", "user", user.id,
           f"Created user {user.username} ({user.role.value})")
    db.commit()
    db.refresh(user)

    logger.info(f"✅ Admin {current_user.username} created user {user.username}")
    return user


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user_details(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Get specific user details (Admin only)"""
    return _get_user_or_404(db, user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Update a user (Admin only)

    Only fields present in the body are changed.
    """
    user = _get_user_or_404(db, user_id)
    changes = user_data.model_dump(exclude_unset=True)

    if "email" in changes and changes["email"] != user.email:
        if db.query(User).filter(User.email == changes["email"], User.id != user.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )
    if changes.get("employee_number") and db.query(User).filter(
        User.employee_number == changes["employee_number"], User.id != user.id
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee number already registered"
        )
    if "department_id" in changes:
        _check_department(db, changes["department_id"])
    if user.id == current_user.id and changes.get("is_active") is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    if changes.get("role") is not None:
        changes["role"] = UserRole(changes["role"].value if hasattr(changes["role"], "value") else changes["role"])

    for field, value in changes.items():
        setattr(user, field, value)

    audit_changes = {k: (v.value if hasattr(v, "value") else v) for k, v in changes.items()}
    if password:
        audit_changes["password"] = "changed"
    _audit(db, current_user, "update_user", "user", user.id,
           f"Updated user {user.username}", audit_changes)
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {current_user.username} updated user {user.username}: {list(audit_changes)}")
    return user


@router.put("/users/{user_id}/toggle-active")
async def toggle_user_active(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Activate/Deactivate user (Admin only)

    Inactive users cannot login or act on requests.
    """
    user = _get_user_or_404(db, user_id)

    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    user.is_active = not user.is_active
    action = "activated" if user.is_active else "deactivated"
    _audit(db, current_user, "toggle_user_active", "user", user.id,
           f"{action.capitalize()} user {user.username}", {"is_active": user.is_active})
    db.commit()

    logger.info(f"Admin {current_user.username} {action} user {user.username}")
    return {
        "success": True,
        "message": f"User {action} successfully",
        "is_active": user.is_active
    }


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Delete user (Admin only)

    Users who submitted requests cannot be deleted; deactivate them instead.
    """
    user = _get_user_or_404(db, user_id)

    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    if db.query(ApprovalRequest.id).filter(ApprovalRequest.requester_id == user.id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User has submitted requests. Deactivate the account instead."
        )

    username = user.username
    db.query(Department).filter(Department.manager_id == user.id).update(
        {Department.manager_id: None}, synchronize_session=False
    )
    db.query(AuditLog).filter(AuditLog.user_id == user.id).update(
        {AuditLog.user_id: None}, synchronize_session=False
    )
    _audit(db, current_user, "delete_user", "user", user.id,
           f"Deleted user {username}", {"deleted_user": username})
    db.delete(user)
    db.commit()

    logger.warning(f"Admin {current_user.username} deleted user {username}")
    return {
        "success": True,
        "message": f"User {username} deleted successfully"
    }


# ============================================
# DEPARTMENTS
# ============================================

@router.get("/departments", response_model=List[DepartmentResponse])
async def get_departments(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Departments with manager name and member count"""
    departments = db.query(Department).order_by(Department.name).all()
    return [_department_response(db, department) for department in departments]


@router.post("/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a department; the id is derived from the name when omitted"""
    department_id = data.id or _department_id_from_name(data.name)

    if db.query(Department).filter(
        (Department.id == department_id) | (Department.name == data.name)
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Department already exists"
        )

    department = Department(id=department_id, name=data.name)
    db.add(department)
    _audit(db, current_user, "create_department", "department", department_id,
           f"Created department {data.name}")
    db.commit()
    db.refresh(department)

    logger.info(f"✅ Admin {current_user.username} created department {department_id}")
    return _department_response(db, department)


@router.put("/departments/{department_id}", response_model=DepartmentResponse)
async def rename_department(
    department_id: str,
    data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Rename a department"""
    department = _get_department_or_404(db, department_id)

    if db.query(Department).filter(Department.name == data.name, Department.id != department_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Department name already in use"
        )

    old_name = department.name
    department.name = data.name
    _audit(db, current_user, "rename_department", "department", department_id,
           f"Renamed department {old_name} to {data.name}", {"name": data.name})
    db.commit()
    db.refresh(department)
    return _department_response(db, department)


@router.put("/departments/{department_id}/manager", response_model=DepartmentResponse)
async def assign_department_manager(
    department_id: str,
    data: DepartmentManagerAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Assign or clear the department manager

    The assignee must hold the manager or general_manager role.
    """
    department = _get_department_or_404(db, department_id)

    if data.manager_id is not None:
        manager = _get_user_or_404(db, data.manager_id)
        if manager.role not in DEPARTMENT_HEAD_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Department manager must have the manager or general_manager role"
            )

    department.manager_id = data.manager_id
    _audit(db, current_user, "assign_department_manager", "department", department_id,
           f"Set manager of {department.name} to {data.manager_id}", {"manager_id": data.manager_id})
    db.commit()
    db.refresh(department)
    return _department_response(db, department)


@router.delete("/departments/{department_id}")
async def delete_department(
    department_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Delete a department

    Refused while users, employees or requests still reference it.
    """
    department = _get_department_or_404(db, department_id)

    if db.query(User.id).filter(User.department_id == department_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Department still has members"
        )
    if db.query(Employee.id).filter(Employee.department_id == department_id).first() or \
            db.query(ApprovalRequest.id).filter(ApprovalRequest.department_id == department_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Department is referenced by employees or requests"
        )

    name = department.name
    _audit(db, current_user, "delete_department", "department", department_id, f"Deleted department {name}")
    db.delete(department)
    db.commit()

    logger.warning(f"Admin {current_user.username} deleted department {department_id}")
    return {"success": True, "message": f"Department {name} deleted successfully"}


# ============================================
# EMPLOYEES
# ============================================

def _check_employee_unique(db: Session, employee_number: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
    query = db.query(Employee)
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if employee_number and query.filter(Employee.employee_number == employee_number).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee number already exists"
        )
    if email and query.filter(Employee.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee email already exists"
        )


@router.get("/employees", response_model=List[EmployeeResponse])
async def get_employees(
    department_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Employee master list"""
    query = db.query(Employee)
    if department_id:
        query = query.filter(Employee.department_id == department_id)
    if is_active is not None:
        query = query.filter(Employee.is_active == is_active)
    return query.order_by(Employee.employee_number).all()


@router.post("/employees", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Add an employee to the master list"""
    _check_employee_unique(db, data.employee_number, data.email)
    _check_department(db, data.department_id)

    employee = Employee(**data.model_dump())
    db.add(employee)
    db.flush()
    _audit(db, current_user, "create_employee", "employee", employee.id,
           f"Created employee {employee.employee_number} ({employee.name})")
    db.commit()
    db.refresh(employee)
    return employee


@router.put("/employees/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update an employee"""
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    changes = data.model_dump(exclude_unset=True)
    _check_employee_unique(db, changes.get("employee_number"), changes.get("email"), exclude_id=employee.id)
    if "department_id" in changes:
        _check_department(db, changes["department_id"])

    for field, value in changes.items():
        setattr(employee, field, value)
    _audit(db, current_user, "update_employee", "employee", employee.id,
           f"Updated employee {employee.employee_number}", changes)
    db.commit()
    db.refresh(employee)
    return employee


@router.delete("/employees/{employee_id}")
async def delete_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Remove an employee from the master list"""
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    _audit(db, current_user, "delete_employee", "employee", employee.id,
           f"Deleted employee {employee.employee_number}")
    db.delete(employee)
    db.commit()
    return {"success": True, "message": "Employee deleted successfully"}


# ============================================
# SETTINGS
# ============================================

@router.get("/settings/broadcast-emails", response_model=BroadcastEmails)
async def get_broadcast_emails(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Addresses notified when a request is fully approved"""
    return settings_service.get_broadcast_emails(db)


@router.put("/settings/broadcast-emails", response_model=BroadcastEmails)
async def update_broadcast_emails(
    data: BroadcastEmails,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Replace the broadcast lists

    Blank entries are dropped; each list holds at most five addresses.
    """
    for department_id in data.managers:
        _check_department(db, department_id)

    saved = settings_service.save_broadcast_emails(db, data)
    log_audit(current_user.id, "update_broadcast_emails", "broadcast lists replaced")
    return saved


# ============================================
# SYSTEM
# ============================================

@router.get("/system-stats")
async def get_system_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Get system statistics (Admin only)

    **Returns:**
    - User statistics
    - Request statistics
    """
    total_users = db.query(func.count(User.id)).scalar()
    active_users = db.query(func.count(User.id)).filter(User.is_active == True).scalar()
    users_by_role = db.query(
        User.role,
        func.count(User.id).label("count")
    ).group_by(User.role).all()

    requests_by_status = db.query(
        ApprovalRequest.status,
        func.count(ApprovalRequest.id).label("count")
    ).group_by(ApprovalRequest.status).all()
    status_counts = {request_status.value: count for request_status, count in requests_by_status}
    requests_by_type = db.query(
        ApprovalRequest.type,
        func.count(ApprovalRequest.id).label("count")
    ).group_by(ApprovalRequest.type).all()
    # Legacy type names fold into their current type
    type_counts = {}
    for stored_type, count in requests_by_type:
        key = normalize_request_type(stored_type).value
        type_counts[key] = type_counts.get(key, 0) + count
    total_requests = sum(status_counts.values())
    finished = status_counts.get(RequestStatus.APPROVED.value, 0) + status_counts.get(RequestStatus.REJECTED.value, 0)

    return {
        "success": True,
        "users": {
            "total": total_users,
            "active": active_users,
            "inactive": total_users - active_users,
            "by_role": [
                {"role": role.value, "count": count}
                for role, count in users_by_role
            ]
        },
        "departments": db.query(func.count(Department.id)).scalar(),
        "employees": db.query(func.count(Employee.id)).scalar(),
        "requests": {
            "total": total_requests,
            "in_progress": total_requests - finished,
            "approved": status_counts.get(RequestStatus.APPROVED.value, 0),
            "rejected": status_counts.get(RequestStatus.REJECTED.value, 0),
            "by_status": status_counts,
            "by_type": type_counts
        },
        "system_health": "healthy"
    }
