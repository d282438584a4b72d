"""
Approval Workflow Tests
Approve/reject endpoints, approval lists and decision side effects
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from conftest import leave_payload
from src.models.notification import Notification, NotificationType
from src.models.system_setting import SystemSetting, BROADCAST_EMAILS_KEY
from src.services.email_service import email_service


@pytest.fixture
def submitted(client, users, headers):
    """A pending leave request from staff_a (dept-a)"""
    response = client.post("/api/requests", json={"type": "leave", "payload": leave_payload()}, headers=headers["staff"])
    assert response.status_code == 201
    return response.json()["request"]["id"]


@pytest.fixture
def sent_broadcasts(monkeypatch):
    """Capture full-approval broadcasts instead of sending mail"""
    calls = []

    def fake_broadcast(recipients, request_data):
        calls.append((list(recipients), request_data))
        return len(calls)

    monkeypatch.setattr(email_service, "send_full_broadcast", fake_broadcast)
    return calls


def approve(client, request_id, headers, comment=None):
    body = {"comment": comment} if comment else None
    return client.post(f"/api/approvals/{request_id}/approve", json=body, headers=headers)


def reject(client, request_id, headers, comment=None):
    body = {"comment": comment} if comment else None
    return client.post(f"/api/approvals/{request_id}/reject", json=body, headers=headers)


class TestApprovalFlow:
    """manager -> general manager -> hrd/finance"""

    def test_full_approval(self, client, test_db, users, headers, submitted, sent_broadcasts):
        first = approve(client, submitted, headers["manager"], "Fine by me")
        assert first.status_code == 200
        assert first.json()["request"]["status"] == "manager_approved"
        assert first.json()["request"]["approval_flow"][0]["comment"] == "Fine by me"
        assert first.json()["request"]["current_step_index"] == 1

        second = approve(client, submitted, headers["gm"])
        assert second.json()["request"]["status"] == "gm_approved"

        third = approve(client, submitted, headers["hrd"])
        data = third.json()["request"]
        assert data["status"] == "approved"
        assert [step["status"] for step in data["approval_flow"]] == ["approved"] * 3
        assert data["approval_flow"][2]["decided_by_user_id"] == users["hrd"].id

    def test_finance_can_finish(self, client, test_db, users, headers, submitted, sent_broadcasts):
        approve(client, submitted, headers["manager"])
        approve(client, submitted, headers["gm"])

        response = approve(client, submitted, headers["finance"])

        assert response.status_code == 200
        assert response.json()["request"]["status"] == "approved"

    def test_rejection_stops_the_flow(self, client, test_db, users, headers, submitted):
        approve(client, submitted, headers["manager"])

        response = reject(client, submitted, headers["gm"], "Budget freeze")

        data = response.json()["request"]
        assert data["status"] == "rejected"
        assert data["approval_flow"][1]["status"] == "rejected"
        assert data["approval_flow"][2]["status"] == "pending"

        again = approve(client, submitted, headers["hrd"])
        assert again.status_code == 409
        assert again.json()["code"] == "nothing_to_approve"

    def test_other_department_manager_is_forbidden(self, client, test_db, users, headers, submitted):
        response = approve(client, submitted, headers["manager_b"])

        assert response.status_code == 403
        assert response.json()["code"] == "not_authorized"

        detail = client.get(f"/api/requests/{submitted}", headers=headers["admin"]).json()["request"]
        assert detail["status"] == "pending"
        assert detail["version"] == 1

    def test_out_of_turn_roles_are_forbidden(self, client, test_db, users, headers, submitted):
        for key in ("gm", "hrd", "finance", "staff", "admin"):
            assert approve(client, submitted, headers[key]).status_code == 403

    def test_approved_request_cannot_be_decided_again(self, client, test_db, users, headers, submitted, sent_broadcasts):
        approve(client, submitted, headers["manager"])
        approve(client, submitted, headers["gm"])
        approve(client, submitted, headers["hrd"])
        before = client.get(f"/api/requests/{submitted}", headers=headers["admin"]).json()["request"]

        response = approve(client, submitted, headers["finance"])

        assert response.status_code == 409
        after = client.get(f"/api/requests/{submitted}", headers=headers["admin"]).json()["request"]
        assert after == before

    def test_unknown_request(self, client, test_db, users, headers):
        response = approve(client, "cuti-0", headers["manager"])
        assert response.status_code == 404


class TestApprovalLists:
    """GET /api/approvals and /api/approvals/pending"""

    def test_pending_list_per_role(self, client, test_db, users, headers, submitted):
        manager = client.get("/api/approvals/pending", headers=headers["manager"]).json()
        manager_b = client.get("/api/approvals/pending", headers=headers["manager_b"]).json()
        gm = client.get("/api/approvals/pending", headers=headers["gm"]).json()

        assert [r["id"] for r in manager["requests"]] == [submitted]
        assert manager["requests"][0]["can_act"] is True
        assert manager_b["count"] == 0
        assert gm["count"] == 0

        approve(client, submitted, headers["manager"])
        gm = client.get("/api/approvals/pending", headers=headers["gm"]).json()
        assert [r["id"] for r in gm["requests"]] == [submitted]

    def test_filter_status(self, client, test_db, users, headers, submitted):
        approve(client, submitted, headers["manager"])

        pending = client.get("/api/approvals", headers=headers["manager"]).json()
        everything = client.get("/api/approvals", params={"filter_status": "all"}, headers=headers["manager"]).json()
        by_status = client.get(
            "/api/approvals", params={"filter_status": "manager_approved"}, headers=headers["manager"]
        ).json()

        assert pending["count"] == 0
        assert everything["count"] == 1
        assert by_status["count"] == 1
        assert everything["requests"][0]["can_act"] is False

    def test_admin_sees_everything_but_cannot_act(self, client, test_db, users, headers, submitted):
        data = client.get("/api/approvals", params={"filter_status": "all"}, headers=headers["admin"]).json()

        assert data["count"] == 1
        assert data["requests"][0]["can_act"] is False


class TestDecisionSideEffects:
    """Notifications and broadcasts that follow a decision"""

    def test_requester_and_next_approver_are_notified(self, client, test_db, users, headers, submitted):
        approve(client, submitted, headers["manager"])

        test_db.expire_all()
        notes = test_db.query(Notification).filter(Notification.request_id == submitted).all()
        requester_notes = [n for n in notes if n.user_id == users["staff"].id]
        gm_notes = [n for n in notes if n.user_id == users["gm"].id]

        assert len(requester_notes) == 1
        assert requester_notes[0].type == NotificationType.REQUEST_APPROVED
        assert len(gm_notes) == 1
        assert gm_notes[0].type == NotificationType.APPROVAL_REQUIRED

    def test_rejection_notifies_requester(self, client, test_db, users, headers, submitted):
        reject(client, submitted, headers["manager"], "Dates clash with audit")

        test_db.expire_all()
        note = test_db.query(Notification).filter(
            Notification.request_id == submitted,
            Notification.user_id == users["staff"].id
        ).one()
        assert note.type == NotificationType.REQUEST_REJECTED
        assert "Dates clash with audit" in note.message

    def test_final_approval_broadcast_recipients(self, client, test_db, users, headers, submitted, sent_broadcasts):
        test_db.add(SystemSetting(key=BROADCAST_EMAILS_KEY, value={
            "hrd": ["hr-team@example.com"],
            "finance": ["payroll@example.com"],
            "general_manager": [],
            "managers": {"dept-a": ["prod-leads@example.com"], "dept-b": ["wh-leads@example.com"]},
        }))
        test_db.commit()

        approve(client, submitted, headers["manager"])
        approve(client, submitted, headers["gm"])
        assert sent_broadcasts == []

        approve(client, submitted, headers["hrd"])

        assert len(sent_broadcasts) == 1
        recipients, summary = sent_broadcasts[0]
        assert summary["id"] == submitted
        assert set(recipients) == {
            users["staff"].email,
            users["manager"].email,
            users["gm"].email,
            users["hrd"].email,
            "hr-team@example.com",
            "payroll@example.com",
            "prod-leads@example.com",
        }

    def test_no_broadcast_on_rejection(self, client, test_db, users, headers, submitted, sent_broadcasts):
        reject(client, submitted, headers["manager"])
        assert sent_broadcasts == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
