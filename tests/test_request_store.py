"""
Request Store Tests
Id generation, compare-and-set updates and filters
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime

import pytest

from src.models.request import ApprovalRequest, RequestStatus, RequestType, StepStatus
from src.services import approval_engine
from src.services.directory_service import to_acting_user
from src.services.request_store import RequestFilter, request_store
from src.utils.exceptions import ConflictError, RequestNotFoundError


def create(db, user, request_type=RequestType.LEAVE, status=RequestStatus.PENDING, department_id=None):
    return request_store.create(
        db,
        request_type=request_type,
        requester_id=user.id,
        requester_name=user.display_name,
        department_id=department_id or user.department_id,
        status=status,
        payload={"reason": "test"},
    )


class TestRequestStore:
    """RequestStore behaviour against SQLite"""

    def test_create_assigns_prefixed_id(self, test_db, users):
        record = create(test_db, users["staff"])

        assert record.id.startswith("cuti-")
        assert record.id.split("-", 1)[1].isdigit()
        assert record.version == 1
        assert record.approval_flow == []

    def test_generate_id_skips_taken_ids(self, test_db, users):
        now = datetime(2026, 3, 2, 9, 0)
        first = request_store.generate_id(test_db, RequestType.PURCHASE, now)
        test_db.add(ApprovalRequest(
            id=first, type="purchase", requester_id=users["staff"].id,
            requester_name="x", status=RequestStatus.PENDING, approval_flow=[], payload={}
        ))
        test_db.commit()

        second = request_store.generate_id(test_db, RequestType.PURCHASE, now)

        assert first.startswith("pr-")
        assert second != first
        assert int(second.split("-")[1]) == int(first.split("-")[1]) + 1

    def test_get_unknown_raises(self, test_db):
        with pytest.raises(RequestNotFoundError):
            request_store.get(test_db, "cuti-0")

    def test_update_writes_flow_and_status_together(self, test_db, users):
        record = create(test_db, users["staff"])
        decided = approval_engine.apply_decision(record, to_acting_user(users["manager"]), "approved")

        stored = request_store.update(test_db, decided, expected_version=record.version)

        assert stored.status == RequestStatus.MANAGER_APPROVED
        assert stored.approval_flow[0].status == StepStatus.APPROVED
        assert stored.approval_flow[0].decided_by_user_id == users["manager"].id
        assert stored.version == 2

    def test_stale_version_raises_conflict(self, test_db, users):
        """Two decisions computed from the same read: only the first lands"""
        record = create(test_db, users["staff"])
        manager = to_acting_user(users["manager"])
        approve = approval_engine.apply_decision(record, manager, "approved")
        reject = approval_engine.apply_decision(record, manager, "rejected")

        request_store.update(test_db, approve, expected_version=record.version)
        with pytest.raises(ConflictError):
            request_store.update(test_db, reject, expected_version=record.version)

        assert request_store.get(test_db, record.id).status == RequestStatus.MANAGER_APPROVED

    def test_update_unknown_raises_not_found(self, test_db, users):
        record = create(test_db, users["staff"])
        ghost = record.model_copy(update={"id": "cuti-1"})
        with pytest.raises(RequestNotFoundError):
            request_store.update(test_db, ghost, expected_version=1)

    def test_query_filters(self, test_db, users):
        create(test_db, users["staff"])
        create(test_db, users["staff_b"], request_type=RequestType.OVERTIME, status=RequestStatus.DRAFT)
        create(test_db, users["staff_b"], status=RequestStatus.GM_APPROVED)

        assert len(request_store.query(test_db)) == 3
        assert len(request_store.query(test_db, RequestFilter(department_id="dept-b"))) == 2
        assert len(request_store.query(test_db, RequestFilter(status=RequestStatus.GM_APPROVED))) == 1
        assert len(request_store.query(test_db, RequestFilter(type=RequestType.OVERTIME))) == 1
        assert len(request_store.query(test_db, RequestFilter(requester_id=users["staff"].id))) == 1

    def test_query_matches_legacy_type_names(self, test_db, users):
        test_db.add(ApprovalRequest(
            id="missedpunch-1", type="missedpunch", requester_id=users["staff"].id,
            requester_name="Staff A", department_id="dept-a", status=RequestStatus.PENDING,
            approval_flow=[], payload={}
        ))
        test_db.commit()

        records = request_store.query(test_db, RequestFilter(type=RequestType.MISSED_PUNCH))

        assert [r.id for r in records] == ["missedpunch-1"]
        assert records[0].type == RequestType.MISSED_PUNCH

    def test_visibility_filter_matches_engine(self, test_db, users):
        """RequestFilter.for_user returns exactly what is_visible_to accepts"""
        create(test_db, users["staff"])
        create(test_db, users["staff_b"])
        create(test_db, users["staff"], status=RequestStatus.MANAGER_APPROVED)
        create(test_db, users["staff_b"], status=RequestStatus.GM_APPROVED)
        everything = request_store.query(test_db)

        for user in users.values():
            acting = to_acting_user(user)
            expected = {r.id for r in everything if approval_engine.is_visible_to(r, acting)}
            actual = {r.id for r in request_store.query(test_db, RequestFilter.for_user(acting))}
            assert actual == expected, user.username


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
