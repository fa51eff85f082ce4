"""Aggregate counts for the admin dashboard."""
from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy import func

from extensions import db
from models import Complaint, User

RECENT_WINDOW_DAYS = 7
TOP_USERS_LIMIT = 10


def _grouped_counts(column, key: str) -> List[Dict]:
    count = func.count(Complaint.id)
    rows = db.session.query(column, count).group_by(column).order_by(count.desc(), column.asc()).all()
    return [{key: value, "count": total} for value, total in rows]


def complaint_stats(now: datetime | None = None) -> Dict:
    now = now or datetime.utcnow()
    since = now - timedelta(days=RECENT_WINDOW_DAYS)
    return {
        "total": Complaint.query.count(),
        "pending": Complaint.query.filter_by(status="pending").count(),
        "resolved": Complaint.query.filter_by(status="resolved").count(),
        "highUrgency": Complaint.query.filter_by(urgency="high").count(),
        "recentComplaints": Complaint.query.filter(Complaint.created_at >= since).count(),
        "categoryStats": _grouped_counts(Complaint.category, "category"),
        "urgencyStats": _grouped_counts(Complaint.urgency, "urgency"),
    }


def user_stats() -> Dict:
    complaint_count = func.count(Complaint.id).label("complaint_count")
    top_rows = (
        db.session.query(User, complaint_count)
        .outerjoin(Complaint, Complaint.user_id == User.id)
        .group_by(User.id)
        .order_by(complaint_count.desc(), User.created_at.asc())
        .limit(TOP_USERS_LIMIT)
        .all()
    )
    return {
        "totalUsers": User.query.count(),
        "verifiedUsers": User.query.filter_by(is_verified=True).count(),
        "adminUsers": User.query.filter_by(role="admin").count(),
        "staffUsers": User.query.filter_by(role="staff").count(),
        "topUsers": [
            {"id": user.id, "name": user.name, "email": user.email, "complaintCount": total}
            for user, total in top_rows
        ],
    }
