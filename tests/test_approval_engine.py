"""
Approval Engine Tests
Flow synthesis, eligibility and decision rules
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime

import pytest

from src.models.request import RequestStatus, RequestType, StepRole, StepStatus
from src.schemas.request import ActingUser, ApprovalStep, RequestRecord
from src.services import approval_engine
from src.utils.exceptions import AuthorizationError, InvalidStateError

NOW = datetime(2026, 3, 2, 9, 30)

ALL_ROLES = ["staff", "manager", "general_manager", "hrd", "finance", "admin", "auditor"]

# (role, status) pairs allowed to act; managers additionally need a matching department
ACTIONABLE = {
    ("manager", RequestStatus.DRAFT),
    ("manager", RequestStatus.PENDING),
    ("general_manager", RequestStatus.MANAGER_APPROVED),
    ("hrd", RequestStatus.GM_APPROVED),
    ("finance", RequestStatus.GM_APPROVED),
}


def make_request(status=RequestStatus.PENDING, department_id="D1", approval_flow=None, **extra) -> RequestRecord:
    return RequestRecord(
        id="cuti-1767225600000",
        type=RequestType.LEAVE,
        requester_id=1,
        requester_name="Staff One",
        department_id=department_id,
        status=status,
        approval_flow=approval_flow or [],
        payload={"reason": "Family event"},
        created_at=NOW,
        updated_at=NOW,
        **extra
    )


def make_user(role: str, department_id="D1", user_id=10) -> ActingUser:
    return ActingUser(id=user_id, display_name=f"{role} user", role=role, department_id=department_id)


MANAGER_D1 = make_user("manager", "D1", 11)
GM = make_user("general_manager", "D9", 12)
HRD = make_user("hrd", "D9", 13)
FINANCE = make_user("finance", "D9", 14)


class TestResolveApprovalFlow:
    """Default flow synthesis"""

    @pytest.mark.parametrize("department_id", ["D1", "D2", None])
    def test_empty_flow_gets_default_chain(self, department_id):
        """Empty flow resolves to manager -> general_manager -> hrd, all pending"""
        flow = approval_engine.resolve_approval_flow(make_request(department_id=department_id))

        assert [step.role for step in flow] == [StepRole.MANAGER, StepRole.GENERAL_MANAGER, StepRole.HRD]
        assert all(step.status == StepStatus.PENDING for step in flow)
        assert flow[0].department_id == department_id

    def test_existing_flow_is_returned_unchanged(self):
        """A stored flow is never regenerated"""
        stored = [
            ApprovalStep(role=StepRole.MANAGER, department_id="D1", status=StepStatus.APPROVED,
                         decided_at=NOW, decided_by_user_id=11, decided_by_name="Manager", comment="ok"),
            ApprovalStep(role=StepRole.FINANCE, status=StepStatus.PENDING),
        ]
        request = make_request(approval_flow=stored)

        flow = approval_engine.resolve_approval_flow(request)

        assert flow == stored
        assert [s.model_dump() for s in flow] == [s.model_dump() for s in stored]

    def test_resolving_does_not_touch_the_record(self):
        request = make_request()
        approval_engine.resolve_approval_flow(request)
        assert request.approval_flow == []


class TestCurrentStepIndex:
    """First pending step lookup"""

    def test_first_pending_index(self):
        flow = [
            ApprovalStep(role=StepRole.MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.PENDING),
            ApprovalStep(role=StepRole.HRD, status=StepStatus.PENDING),
        ]
        assert approval_engine.current_step_index(flow) == 1

    def test_all_decided_returns_zero(self):
        flow = [
            ApprovalStep(role=StepRole.MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.REJECTED),
        ]
        assert approval_engine.current_step_index(flow) == 0
        assert not approval_engine.has_pending_step(flow)

    def test_empty_flow_returns_zero(self):
        assert approval_engine.current_step_index([]) == 0


class TestCanAct:
    """Role and status eligibility"""

    @pytest.mark.parametrize("role", ALL_ROLES)
    @pytest.mark.parametrize("status", list(RequestStatus))
    def test_only_listed_combinations_can_act(self, role, status):
        """Every role/status pair outside the table is refused"""
        request = make_request(status=status, department_id="D1")
        user = make_user(role, "D1")

        assert approval_engine.can_act(request, user) == ((role, status) in ACTIONABLE)

    def test_manager_of_other_department_cannot_act(self):
        request = make_request(department_id="D1")
        assert not approval_engine.can_act(request, make_user("manager", "D2"))

    def test_manager_without_department_cannot_act(self):
        request = make_request(department_id="D1")
        assert not approval_engine.can_act(request, make_user("manager", None))

    def test_request_without_department_blocks_managers(self):
        request = make_request(department_id=None)
        assert not approval_engine.can_act(request, make_user("manager", None))

    def test_general_manager_ignores_department(self):
        request = make_request(status=RequestStatus.MANAGER_APPROVED, department_id="D1")
        assert approval_engine.can_act(request, make_user("general_manager", "D7"))


class TestApplyDecision:
    """Decisions on the current step"""

    def test_manager_approval_moves_to_general_manager(self):
        request = make_request()

        result = approval_engine.apply_decision(request, MANAGER_D1, "approved", now=NOW)

        assert result.status == RequestStatus.MANAGER_APPROVED
        assert approval_engine.current_step_index(result.approval_flow) == 1
        step = result.approval_flow[0]
        assert step.status == StepStatus.APPROVED
        assert step.decided_at == NOW
        assert step.decided_by_user_id == MANAGER_D1.id
        assert step.decided_by_name == MANAGER_D1.display_name
        assert result.updated_at == NOW

    def test_decision_returns_new_record(self):
        request = make_request()
        result = approval_engine.apply_decision(request, MANAGER_D1, "approved", now=NOW)

        assert result is not request
        assert request.status == RequestStatus.PENDING
        assert request.approval_flow == []

    def test_draft_overtime_can_be_approved_by_manager(self):
        request = make_request(status=RequestStatus.DRAFT).model_copy(update={"type": RequestType.OVERTIME})
        result = approval_engine.apply_decision(request, MANAGER_D1, "approved", now=NOW)
        assert result.status == RequestStatus.MANAGER_APPROVED

    @pytest.mark.parametrize("approvers,reject_index", [
        ([], 0),
        (["manager"], 1),
        (["manager", "general_manager"], 2),
    ])
    def test_rejection_ends_workflow(self, approvers, reject_index):
        """Rejecting at any step sets rejected and leaves later steps pending"""
        actors = {"manager": MANAGER_D1, "general_manager": GM, "hrd": HRD}
        request = make_request()
        for role in approvers:
            request = approval_engine.apply_decision(request, actors[role], "approved", now=NOW)

        rejecter = [MANAGER_D1, GM, HRD][reject_index]
        result = approval_engine.apply_decision(request, rejecter, "rejected", comment="Not now", now=NOW)

        assert result.status == RequestStatus.REJECTED
        assert result.approval_flow[reject_index].status == StepStatus.REJECTED
        assert result.approval_flow[reject_index].comment == "Not now"
        assert all(step.status == StepStatus.PENDING for step in result.approval_flow[reject_index + 1:])

    def test_full_chain_to_approved(self):
        """manager -> general manager -> hrd ends approved with every step approved"""
        request = make_request(department_id="D1")
        original_flow = approval_engine.resolve_approval_flow(request)

        request = approval_engine.apply_decision(request, MANAGER_D1, "approved", now=NOW)
        assert request.status == RequestStatus.MANAGER_APPROVED
        assert request.approval_flow[0].status == StepStatus.APPROVED

        request = approval_engine.apply_decision(request, GM, "approved", now=NOW)
        assert request.status == RequestStatus.GM_APPROVED

        request = approval_engine.apply_decision(request, HRD, "approved", now=NOW)
        assert request.status == RequestStatus.APPROVED
        assert all(step.status == StepStatus.APPROVED for step in request.approval_flow)
        for before, after in zip(original_flow[1:], request.approval_flow[1:]):
            assert (before.role, before.department_id) == (after.role, after.department_id)

    def test_finance_can_take_the_final_step(self):
        request = make_request(status=RequestStatus.GM_APPROVED, approval_flow=[
            ApprovalStep(role=StepRole.MANAGER, department_id="D1", status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.HRD, status=StepStatus.PENDING),
        ])

        result = approval_engine.apply_decision(request, FINANCE, "approved", now=NOW)

        assert result.status == RequestStatus.APPROVED
        assert result.approval_flow[2].decided_by_user_id == FINANCE.id

    def test_manager_of_other_department_is_refused(self):
        request = make_request(department_id="D1")
        snapshot = request.model_dump()

        with pytest.raises(AuthorizationError):
            approval_engine.apply_decision(request, make_user("manager", "D2"), "approved")

        assert request.model_dump() == snapshot

    def test_out_of_turn_role_is_refused(self):
        with pytest.raises(AuthorizationError):
            approval_engine.apply_decision(make_request(), GM, "approved")

    def test_unknown_action_is_refused(self):
        with pytest.raises(AuthorizationError):
            approval_engine.apply_decision(make_request(), MANAGER_D1, "escalated")

    def test_pending_is_not_a_decision(self):
        with pytest.raises(AuthorizationError):
            approval_engine.apply_decision(make_request(), MANAGER_D1, "pending")

    @pytest.mark.parametrize("status", [RequestStatus.APPROVED, RequestStatus.REJECTED])
    @pytest.mark.parametrize("user", [MANAGER_D1, GM, HRD, make_user("admin")])
    def test_terminal_request_raises_invalid_state(self, status, user):
        """Terminal requests fail with InvalidStateError whoever asks"""
        request = make_request(status=status)
        snapshot = request.model_dump()

        with pytest.raises(InvalidStateError):
            approval_engine.apply_decision(request, user, "approved")

        assert request.model_dump() == snapshot

    def test_flow_without_pending_step_raises_invalid_state(self):
        request = make_request(status=RequestStatus.GM_APPROVED, approval_flow=[
            ApprovalStep(role=StepRole.MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.APPROVED),
        ])
        with pytest.raises(InvalidStateError):
            approval_engine.apply_decision(request, HRD, "approved")

    @pytest.mark.parametrize("user", [make_user("staff"), make_user("admin"), MANAGER_D1])
    def test_pending_status_with_decided_flow_raises_invalid_state(self, user):
        """A pending request whose steps are all decided is checked before the actor"""
        request = make_request(status=RequestStatus.PENDING, approval_flow=[
            ApprovalStep(role=StepRole.MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.GENERAL_MANAGER, status=StepStatus.APPROVED),
            ApprovalStep(role=StepRole.HRD, status=StepStatus.APPROVED),
        ])
        with pytest.raises(InvalidStateError):
            approval_engine.apply_decision(request, user, "approved")


class TestHelpers:
    """Final status, next step and visibility"""

    def test_final_status(self):
        flow = approval_engine.default_approval_flow("D1")
        assert approval_engine.final_status(flow) == "pending"

        decided = approval_engine.apply_decision(make_request(), MANAGER_D1, "rejected", now=NOW)
        assert approval_engine.final_status(decided.approval_flow) == "rejected"

    def test_next_step_role(self):
        request = make_request()
        assert approval_engine.next_step_role(request) == StepRole.MANAGER

        request = approval_engine.apply_decision(request, MANAGER_D1, "approved", now=NOW)
        assert approval_engine.next_step_role(request) == StepRole.GENERAL_MANAGER

        request = approval_engine.apply_decision(request, GM, "rejected", now=NOW)
        assert approval_engine.next_step_role(request) is None

    @pytest.mark.parametrize("role,department_id,status,visible", [
        ("admin", "D9", RequestStatus.REJECTED, True),
        ("manager", "D1", RequestStatus.APPROVED, True),
        ("manager", "D2", RequestStatus.PENDING, False),
        ("general_manager", "D9", RequestStatus.MANAGER_APPROVED, True),
        ("general_manager", "D9", RequestStatus.PENDING, False),
        ("hrd", "D9", RequestStatus.GM_APPROVED, True),
        ("finance", "D9", RequestStatus.GM_APPROVED, True),
        ("finance", "D9", RequestStatus.APPROVED, False),
        ("staff", "D1", RequestStatus.PENDING, False),
    ])
    def test_visibility(self, role, department_id, status, visible):
        request = make_request(status=status, department_id="D1")
        assert approval_engine.is_visible_to(request, make_user(role, department_id)) == visible

    def test_requester_sees_own_request(self):
        request = make_request()
        assert approval_engine.is_visible_to(request, make_user("staff", "D1", user_id=1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
