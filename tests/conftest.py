"""
Shared test fixtures
SQLite test database, one user per role and token helpers
"""

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SMTP_USERNAME", "")
os.environ.setdefault("SMTP_PASSWORD", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.main import app
from src.config.database import Base, get_db
from src.models.department import Department
from src.models.user import User, UserRole
from src.services.auth_service import auth_service
from src.utils.security import get_password_hash

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


def override_get_db():
    """Override database dependency for testing"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(scope="function")
def test_db():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def departments(test_db):
    """Two departments: dept-a and dept-b"""
    test_db.add_all([
        Department(id="dept-a", name="Production"),
        Department(id="dept-b", name="Warehouse"),
    ])
    test_db.commit()
    return {"a": "dept-a", "b": "dept-b"}


def make_user(db, username: str, role: UserRole, department_id=None, **extra) -> User:
    """Create and return a persisted user"""
    user = User(
        email=f"{username}@example.com",
        username=username,
        full_name=username.replace("_", " ").title(),
        hashed_password=TEST_PASSWORD_HASH,
        role=role,
        department_id=department_id,
        is_active=True,
        **extra
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def users(test_db, departments):
    """One user per role; managers and staff in both departments"""
    return {
        "staff": make_user(test_db, "staff_a", UserRole.STAFF, "dept-a"),
        "staff_b": make_user(test_db, "staff_b", UserRole.STAFF, "dept-b"),
        "manager": make_user(test_db, "manager_a", UserRole.MANAGER, "dept-a"),
        "manager_b": make_user(test_db, "manager_b", UserRole.MANAGER, "dept-b"),
        "gm": make_user(test_db, "general_manager", UserRole.GENERAL_MANAGER, "dept-a"),
        "hrd": make_user(test_db, "hrd_officer", UserRole.HRD, "dept-a"),
        "finance": make_user(test_db, "finance_officer", UserRole.FINANCE, "dept-b"),
        "admin": make_user(test_db, "admin", UserRole.ADMIN, "dept-a"),
    }


def auth_headers(user: User) -> dict:
    """Bearer header for a user"""
    token = auth_service.create_tokens(user)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(users):
    """Authorization headers keyed like the users fixture"""
    return {key: auth_headers(user) for key, user in users.items()}


def leave_payload(reason: str = "Family event") -> dict:
    """Valid leave form payload"""
    return {
        "leave_type": "annual",
        "reason": reason,
        "submission_kind": "self",
        "entries": [
            {
                "employee": {"employee_number": "10001", "name": "Andi Saputra"},
                "start_date": "2026-03-02",
                "end_date": "2026-03-03",
                "total_days": 2,
            }
        ],
    }


def overtime_payload() -> dict:
    """Valid overtime form payload"""
    return {
        "reason": "Month-end stock count",
        "entries": [
            {
                "employee": {"employee_number": "10001", "name": "Andi Saputra"},
                "date": "2026-03-02",
                "start_time": "17:00",
                "end_time": "20:00",
                "break_time": 0.5,
                "total_hours": 2.5,
            }
        ],
    }
