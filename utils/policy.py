"""Authorization rules for complaint access."""
from models import Complaint, User
from utils.errors import AccessDenied


def is_owner(complaint: Complaint, user: User | None) -> bool:
    return bool(user and complaint.user_id == user.id)


def can_read_complaint(complaint: Complaint, user: User | None) -> bool:
    if not user:
        return False
    return is_owner(complaint, user) or user.is_triage


def ensure_can_read(complaint: Complaint, user: User | None) -> None:
    if not can_read_complaint(complaint, user):
        raise AccessDenied()


def ensure_owner(complaint: Complaint, user: User | None) -> None:
    """Owner-only mutations: status toggle and deletion."""
    if not is_owner(complaint, user):
        raise AccessDenied()
