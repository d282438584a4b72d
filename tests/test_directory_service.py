"""
Directory Service Tests
User, department and approver lookups
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from src.models.request import StepRole
from src.services.directory_service import directory_service


class TestDirectoryService:
    """DirectoryService against SQLite"""

    def test_get_user(self, test_db, users):
        acting = directory_service.get_user(test_db, users["manager"].id)

        assert acting.id == users["manager"].id
        assert acting.role == "manager"
        assert acting.department_id == "dept-a"
        assert acting.display_name == "Manager A"

    def test_get_unknown_user(self, test_db, users):
        assert directory_service.get_user(test_db, 9999) is None

    def test_department_name(self, test_db, departments):
        assert directory_service.get_department_name(test_db, "dept-b") == "Warehouse"
        assert directory_service.get_department_name(test_db, "dept-gone") == "dept-gone"
        assert directory_service.get_department_name(test_db, None) is None

    def test_manager_approvers_are_department_scoped(self, test_db, users):
        approvers = directory_service.find_approvers(test_db, StepRole.MANAGER, "dept-b")

        assert [u.username for u in approvers] == ["manager_b"]
        assert directory_service.find_approvers(test_db, StepRole.MANAGER, None) == []

    def test_final_step_approvers_include_finance(self, test_db, users):
        approvers = directory_service.find_approvers(test_db, StepRole.HRD)
        assert {u.username for u in approvers} == {"hrd_officer", "finance_officer"}

    def test_inactive_users_are_skipped(self, test_db, users):
        users["gm"].is_active = False
        test_db.commit()

        assert directory_service.find_approvers(test_db, StepRole.GENERAL_MANAGER) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
