"""Unit tests for the complaint status policy and access rules."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from models import COMPLAINT_STATUSES
from utils.errors import AccessDenied, InvalidStatus
from utils.lifecycle import (
    allowed_statuses,
    apply_changes,
    new_complaint_fields,
    noted_change,
    owner_status_change,
    triage_status_change,
)
from utils.policy import can_read_complaint, ensure_can_read, ensure_owner

NOW = datetime(2026, 3, 1, 9, 30)


def _complaint(status="pending", owner="owner-1", **extra):
    fields = {"status": status, "user_id": owner, "resolved_at": None, "resolved_by": None, "admin_notes": None}
    fields.update(extra)
    return SimpleNamespace(**fields)


def _user(user_id, role="user"):
    return SimpleNamespace(id=user_id, role=role, is_triage=role in ("staff", "admin"), is_admin=role == "admin")


class TestNewComplaint:
    def test_category_and_urgency_come_from_classification(self):
        fields = new_complaint_fields(
            "owner-1",
            "/uploads/a.png",
            "Pothole on main road",
            "Main road",
            {"caption": "c", "category": "Road Issues", "urgency": "high", "confidence": 0.9},
        )

        assert fields["status"] == "pending"
        assert fields["category"] == "Road Issues"
        assert fields["urgency"] == "high"
        assert fields["classification"] == {
            "caption": "c",
            "predictedCategory": "Road Issues",
            "predictedUrgency": "high",
            "confidence": 0.9,
        }


class TestOwnerStatusChange:
    def test_owner_policy_is_pending_or_resolved(self):
        assert allowed_statuses("owner") == frozenset({"pending", "resolved"})
        assert allowed_statuses("triage") == frozenset(COMPLAINT_STATUSES)

    @pytest.mark.parametrize("target", ["in-progress", "noted", "rejected", "bogus"])
    def test_other_targets_are_rejected(self, target):
        with pytest.raises(InvalidStatus):
            owner_status_change(_complaint(), target, now=NOW)

    def test_resolving_stamps_time_only(self):
        changes = owner_status_change(_complaint(), "resolved", now=NOW)

        assert changes == {"status": "resolved", "resolved_at": NOW}

    def test_reopening_clears_resolution(self):
        complaint = _complaint(status="resolved", resolved_at=NOW, resolved_by="staff-1")

        changes = owner_status_change(complaint, "pending", now=NOW)

        assert changes == {"status": "pending", "resolved_at": None, "resolved_by": None}


class TestTriageStatusChange:
    @pytest.mark.parametrize("target", COMPLAINT_STATUSES)
    def test_any_status_is_allowed(self, target):
        assert triage_status_change(_complaint(), "staff-1", target, now=NOW)["status"] == target

    def test_resolving_records_actor(self):
        changes = triage_status_change(_complaint(), "staff-1", "resolved", admin_notes="Fixed", now=NOW)

        assert changes == {"status": "resolved", "resolved_at": NOW, "resolved_by": "staff-1", "admin_notes": "Fixed"}

    def test_leaving_resolved_clears_resolution(self):
        complaint = _complaint(status="resolved", resolved_at=NOW, resolved_by="staff-1")

        changes = triage_status_change(complaint, "staff-2", "in-progress", now=NOW)

        assert changes == {"status": "in-progress", "resolved_at": None, "resolved_by": None}

    def test_notes_untouched_when_absent(self):
        assert "admin_notes" not in triage_status_change(_complaint(), "staff-1", "noted", now=NOW)

    def test_unknown_status_is_rejected(self):
        with pytest.raises(InvalidStatus):
            triage_status_change(_complaint(), "staff-1", "closed", now=NOW)


class TestNotedChange:
    def test_pending_becomes_noted(self):
        assert noted_change(_complaint()) == {"status": "noted"}

    @pytest.mark.parametrize("status", ["noted", "in-progress", "resolved", "rejected"])
    def test_only_pending_can_be_noted(self, status):
        with pytest.raises(InvalidStatus):
            noted_change(_complaint(status=status))


def test_apply_changes_sets_attributes():
    complaint = _complaint()

    apply_changes(complaint, {"status": "noted", "admin_notes": "seen"})

    assert complaint.status == "noted"
    assert complaint.admin_notes == "seen"


class TestPolicy:
    def test_owner_can_read(self):
        assert can_read_complaint(_complaint(owner="u1"), _user("u1"))

    def test_stranger_cannot_read(self):
        with pytest.raises(AccessDenied):
            ensure_can_read(_complaint(owner="u1"), _user("u2"))

    @pytest.mark.parametrize("role", ["staff", "admin"])
    def test_triage_roles_can_read_any(self, role):
        assert can_read_complaint(_complaint(owner="u1"), _user("u9", role=role))

    def test_staff_is_not_owner(self):
        with pytest.raises(AccessDenied):
            ensure_owner(_complaint(owner="u1"), _user("u9", role="admin"))
