"""
Database Setup Script
Creates all tables, departments, one user per role and the employee master list
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from src.config.database import Base, SessionLocal, engine
from src.models.audit_log import AuditLog  # noqa: F401
from src.models.department import Department
from src.models.employee import Employee
from src.models.notification import Notification  # noqa: F401
from src.models.request import ApprovalRequest  # noqa: F401
from src.models.system_setting import SystemSetting  # noqa: F401
from src.models.user import User, UserRole
from src.utils.security import get_password_hash


DEPARTMENTS = [
    ("dept-hr", "Human Resources"),
    ("dept-finance", "Finance"),
    ("dept-production", "Production"),
    ("dept-warehouse", "Warehouse"),
]

# (username, full name, role, department, password)
USERS = [
    ("admin", "System Administrator", UserRole.ADMIN, "dept-hr", "admin123"),
    ("gm", "General Manager", UserRole.GENERAL_MANAGER, "dept-production", "gm123456"),
    ("manager.production", "Production Manager", UserRole.MANAGER, "dept-production", "manager123"),
    ("manager.warehouse", "Warehouse Manager", UserRole.MANAGER, "dept-warehouse", "manager123"),
    ("hrd", "HRD Officer", UserRole.HRD, "dept-hr", "hrd12345"),
    ("finance", "Finance Officer", UserRole.FINANCE, "dept-finance", "finance123"),
    ("staff.production", "Production Staff", UserRole.STAFF, "dept-production", "staff123"),
    ("staff.warehouse", "Warehouse Staff", UserRole.STAFF, "dept-warehouse", "staff123"),
]

EMPLOYEES = [
    ("10001", "Andi Saputra", "dept-production", "Operator"),
    ("10002", "Budi Santoso", "dept-production", "Operator"),
    ("10003", "Citra Lestari", "dept-warehouse", "Storekeeper"),
    ("10004", "Dewi Anggraini", "dept-finance", "Accountant"),
]


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def create_departments(db):
    """Create departments"""
    print("\nCreating departments...")
    if db.query(Department).first():
        print("✓ Departments already exist, skipping...")
        return

    for department_id, name in DEPARTMENTS:
        db.add(Department(id=department_id, name=name))
    db.commit()
    print(f"✓ {len(DEPARTMENTS)} departments created")


def create_initial_users(db):
    """Create one user per role and assign department managers"""
    print("\nCreating initial users...")
    if db.query(User).first():
        print("✓ Users already exist, skipping...")
        return

    for index, (username, full_name, role, department_id, password) in enumerate(USERS, start=1):
        db.add(User(
            email=f"{username}@prestova.local",
            username=username,
            full_name=full_name,
            employee_number=f"EMP{index:03d}",
            hashed_password=get_password_hash(password),
            role=role,
            department_id=department_id,
            is_active=True
        ))
    db.flush()

    for department_id, username in (
        ("dept-production", "manager.production"),
        ("dept-warehouse", "manager.warehouse"),
    ):
        manager = db.query(User).filter(User.username == username).first()
        db.query(Department).filter(Department.id == department_id).update({Department.manager_id: manager.id})

    db.commit()
    print(f"✓ {len(USERS)} users created")


def create_employees(db):
    """Create the employee master list used on multi-employee forms"""
    print("\nCreating employees...")
    if db.query(Employee).first():
        print("✓ Employees already exist, skipping...")
        return

    for employee_number, name, department_id, position in EMPLOYEES:
        db.add(Employee(
            employee_number=employee_number,
            name=name,
            department_id=department_id,
            position=position
        ))
    db.commit()
    print(f"✓ {len(EMPLOYEES)} employees created")


def print_setup_summary():
    """Print setup summary and credentials"""
    print("\n" + "=" * 70)
    print("✓ DATABASE SETUP COMPLETED SUCCESSFULLY!")
    print("=" * 70)

    print("\n🔐 TEST USER CREDENTIALS:")
    for username, _, role, department_id, password in USERS:
        print(f"  • {username:<20} {role.value:<16} {department_id:<16} password: {password}")

    print("\n🚀 NEXT STEPS:")
    print("  1. Start the application: uvicorn src.main:app --reload")
    print("  2. Access API Documentation: http://localhost:8000/api/docs")
    print("  3. Submit a form as staff, then approve as manager -> gm -> hrd")
    print("\n" + "=" * 70 + "\n")


def main():
    """Main setup function"""
    print("=" * 70)
    print("PRESTOVA ONE APPROVAL - DATABASE SETUP")
    print("=" * 70)

    db = SessionLocal()
    try:
        create_tables()
        create_departments(db)
        create_initial_users(db)
        create_employees(db)
        print_setup_summary()
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n✗ Database setup failed: {str(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
