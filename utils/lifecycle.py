"""Complaint status policy and change-set builders.

The functions here never touch the session: they read the current complaint
and return the column changes a transition implies. Route handlers apply the
changes with ``apply_changes`` and commit.
"""
from datetime import datetime
from typing import Any, Dict, Mapping

from models import COMPLAINT_STATUSES
from utils.errors import InvalidStatus

INITIAL_STATUS = "pending"

# Who may move a complaint to which status. Owners only toggle between
# "still open" and "done"; triage roles may set any status.
STATUS_POLICY: Dict[str, frozenset] = {
    "owner": frozenset({"pending", "resolved"}),
    "triage": frozenset(COMPLAINT_STATUSES),
}

# Acknowledging a complaint is only meaningful before triage starts.
NOTED_FROM = frozenset({"pending"})


def allowed_statuses(actor_kind: str) -> frozenset:
    return STATUS_POLICY.get(actor_kind, frozenset())


def _resolution_changes(current_status: str, new_status: str, resolver_id: str | None, now: datetime) -> Dict[str, Any]:
    if new_status == "resolved":
        return {"resolved_at": now, "resolved_by": resolver_id}
    if current_status == "resolved":
        return {"resolved_at": None, "resolved_by": None}
    return {}


def new_complaint_fields(
    owner_id: str,
    photo: str,
    description: str,
    location: str,
    classification: Mapping[str, Any],
    latitude: float | None = None,
    longitude: float | None = None,
) -> Dict[str, Any]:
    """Fields for a freshly filed complaint; category and urgency come from classification only."""
    return {
        "user_id": owner_id,
        "photo": photo,
        "description": description,
        "location": location,
        "latitude": latitude,
        "longitude": longitude,
        "category": classification["category"],
        "urgency": classification["urgency"],
        "status": INITIAL_STATUS,
        "classification": {
            "caption": classification["caption"],
            "predictedCategory": classification["category"],
            "predictedUrgency": classification["urgency"],
            "confidence": classification["confidence"],
        },
    }


def owner_status_change(complaint, new_status: str, now: datetime | None = None) -> Dict[str, Any]:
    if new_status not in allowed_statuses("owner"):
        raise InvalidStatus()
    now = now or datetime.utcnow()
    changes: Dict[str, Any] = {"status": new_status}
    if new_status == "resolved":
        changes["resolved_at"] = now
    elif complaint.status == "resolved":
        changes.update({"resolved_at": None, "resolved_by": None})
    return changes


def triage_status_change(
    complaint,
    actor_id: str,
    new_status: str,
    admin_notes: str | None = None,
    now: datetime | None = None,
) -> Dict[str, Any]:
    if new_status not in allowed_statuses("triage"):
        raise InvalidStatus()
    now = now or datetime.utcnow()
    changes: Dict[str, Any] = {"status": new_status}
    changes.update(_resolution_changes(complaint.status, new_status, actor_id, now))
    if admin_notes is not None:
        changes["admin_notes"] = admin_notes
    return changes


def noted_change(complaint) -> Dict[str, Any]:
    if complaint.status not in NOTED_FROM:
        raise InvalidStatus(f"Only pending complaints can be marked as noted (current status: {complaint.status})")
    return {"status": "noted"}


def apply_changes(entity, changes: Mapping[str, Any]):
    for field, value in changes.items():
        setattr(entity, field, value)
    return entity
