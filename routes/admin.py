"""Staff and admin triage console: listings, status changes, statistics, role management."""
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user
from sqlalchemy import or_
from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from extensions import db
from models import COMPLAINT_CATEGORIES, COMPLAINT_STATUSES, DEPARTMENTS, ROLES, URGENCY_LEVELS, Complaint, User
from utils.accounts import change_role
from utils.decorators import roles_required
from utils.email_service import send_complaint_noted_email
from utils.errors import NotFound, ValidationError
from utils.lifecycle import apply_changes, noted_change, triage_status_change
from utils.ml_client import get_classifier
from utils.pagination import PageQueryForm, SortedPageQueryForm, apply_sort, page_params, paginate
from utils.stats import complaint_stats, user_stats
from utils.validation import ApiForm, as_text, blank_to_none, strip_value, validate_form
from .complaints import SORT_COLUMNS, get_complaint_or_404

admin_bp = Blueprint("admin", __name__)


def _optional_choice(label: str, choices, message: str):
    return StringField(label, filters=[strip_value, blank_to_none], validators=[Optional(), AnyOf(choices, message=message)])


class ComplaintFilterQuery(SortedPageQueryForm):
    status = _optional_choice("Status", COMPLAINT_STATUSES, "Invalid status")
    category = _optional_choice("Category", COMPLAINT_CATEGORIES, "Invalid category")
    urgency = _optional_choice("Urgency", URGENCY_LEVELS, "Invalid urgency")
    q = StringField("Query", filters=[strip_value, blank_to_none])


class SearchQuery(PageQueryForm):
    q = StringField("Query", filters=[strip_value, blank_to_none], validators=[DataRequired(message="Search query is required")])


class UserFilterQuery(PageQueryForm):
    role = _optional_choice("Role", ROLES, "Invalid role")
    q = StringField("Query", filters=[strip_value, blank_to_none])


class TriageStatusForm(ApiForm):
    status = StringField("Status", filters=[as_text, strip_value, blank_to_none], validators=[DataRequired(message="Status is required")])
    admin_notes = StringField(
        "Admin notes",
        name="adminNotes",
        filters=[as_text, strip_value, blank_to_none],
        validators=[Optional(), Length(max=500, message="Admin notes cannot exceed 500 characters")],
    )


class RoleForm(ApiForm):
    role = StringField("Role", filters=[as_text, strip_value, blank_to_none], validators=[DataRequired(message="Role is required")])
    department = StringField(
        "Department",
        filters=[as_text, strip_value, blank_to_none],
        validators=[Optional(), AnyOf(DEPARTMENTS, message="Department must be one of: " + ", ".join(DEPARTMENTS))],
    )


def _query_form(form_class):
    return validate_form(form_class(formdata=request.args), "Invalid query parameters")


def _complaint_row(complaint: Complaint) -> dict:
    return complaint.to_dict(include_people=True)


def _matches_text(text: str):
    pattern = f"%{text}%"
    return or_(
        Complaint.description.ilike(pattern),
        Complaint.location.ilike(pattern),
        Complaint.category.ilike(pattern),
    )


def _recent_first(query):
    return query.order_by(Complaint.created_at.desc())


@admin_bp.route("/complaints", methods=["GET"])
@roles_required("admin", "staff")
def list_complaints():
    form = _query_form(ComplaintFilterQuery)
    query = Complaint.query
    for field in (form.status, form.category, form.urgency):
        if field.data:
            query = query.filter(getattr(Complaint, field.name) == field.data)
    if form.q.data:
        query = query.filter(_matches_text(form.q.data))
    query = apply_sort(query, SORT_COLUMNS, form.sort_by.data, form.sort_order.data)
    page, limit = page_params(form)
    return jsonify(paginate(query, page, limit, _complaint_row))


@admin_bp.route("/stats", methods=["GET"])
@roles_required("admin", "staff")
def stats():
    return jsonify(complaint_stats())


@admin_bp.route("/complaints/<string:complaint_id>/noted", methods=["PUT"])
@roles_required("admin", "staff")
def mark_noted(complaint_id):
    complaint = get_complaint_or_404(complaint_id)
    apply_changes(complaint, noted_change(complaint))
    db.session.commit()
    current_app.logger.info("Complaint marked as noted", extra={"complaint_id": complaint.id, "actor_id": current_user.id})

    notified = True
    try:
        send_complaint_noted_email(complaint)
    except Exception as exc:
        notified = False
        current_app.logger.warning(
            "Complaint notification failed",
            extra={"complaint_id": complaint.id, "error": str(exc)},
        )

    message = "Complaint marked as noted and notification sent" if notified else "Complaint marked as noted"
    return jsonify({"message": message, "notified": notified, "complaint": _complaint_row(complaint)})


@admin_bp.route("/complaints/<string:complaint_id>/status", methods=["PUT"])
@roles_required("admin", "staff")
def update_status(complaint_id):
    complaint = get_complaint_or_404(complaint_id)
    form = validate_form(TriageStatusForm())
    changes = triage_status_change(complaint, current_user.id, form.status.data, admin_notes=form.admin_notes.data)
    apply_changes(complaint, changes)
    db.session.commit()
    current_app.logger.info(
        "Complaint status changed by staff",
        extra={"complaint_id": complaint.id, "status": complaint.status, "actor_id": current_user.id},
    )
    return jsonify({"message": "Complaint status updated successfully", "complaint": _complaint_row(complaint)})


@admin_bp.route("/complaints/category/<string:category>", methods=["GET"])
@roles_required("admin", "staff")
def complaints_by_category(category):
    if category not in COMPLAINT_CATEGORIES:
        raise ValidationError("Invalid category", errors={"category": [f"'{category}' is not a complaint category"]})
    form = _query_form(PageQueryForm)
    page, limit = page_params(form)
    payload = paginate(_recent_first(Complaint.query.filter_by(category=category)), page, limit, _complaint_row)
    payload["category"] = category
    return jsonify(payload)


@admin_bp.route("/complaints/urgency/<string:urgency>", methods=["GET"])
@roles_required("admin", "staff")
def complaints_by_urgency(urgency):
    if urgency not in URGENCY_LEVELS:
        raise ValidationError("Invalid urgency", errors={"urgency": [f"'{urgency}' is not an urgency level"]})
    form = _query_form(PageQueryForm)
    page, limit = page_params(form)
    payload = paginate(_recent_first(Complaint.query.filter_by(urgency=urgency)), page, limit, _complaint_row)
    payload["urgency"] = urgency
    return jsonify(payload)


@admin_bp.route("/complaints/search", methods=["GET"])
@roles_required("admin", "staff")
def search_complaints():
    form = validate_form(SearchQuery(formdata=request.args), "Search query is required")
    query = Complaint.query.filter(_matches_text(form.q.data))
    page, limit = page_params(form)
    payload = paginate(_recent_first(query), page, limit, _complaint_row)
    payload["query"] = form.q.data
    return jsonify(payload)


@admin_bp.route("/users", methods=["GET"])
@roles_required("admin", "staff")
def list_users():
    form = _query_form(UserFilterQuery)
    query = User.query
    if form.role.data:
        query = query.filter_by(role=form.role.data)
    if form.q.data:
        pattern = f"%{form.q.data}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    page, limit = page_params(form)
    return jsonify(paginate(query.order_by(User.created_at.desc()), page, limit, lambda u: u.to_dict()))


@admin_bp.route("/users/stats", methods=["GET"])
@roles_required("admin", "staff")
def users_stats():
    return jsonify(user_stats())


@admin_bp.route("/users/<string:user_id>/role", methods=["PUT"])
@roles_required("admin")
def update_user_role(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    form = validate_form(RoleForm())
    change_role(user, form.role.data, department=form.department.data)
    return jsonify({"message": "User role updated successfully", "user": user.to_dict()})


@admin_bp.route("/ml/health", methods=["GET"])
@roles_required("admin", "staff")
def ml_health():
    details = get_classifier().health()
    return jsonify({"available": details is not None, "details": details})


@admin_bp.route("/ml/stats", methods=["GET"])
@roles_required("admin", "staff")
def ml_stats():
    stats_payload = get_classifier().stats()
    if stats_payload is None:
        return jsonify({"message": "ML statistics unavailable"}), 503
    return jsonify({"stats": stats_payload})
