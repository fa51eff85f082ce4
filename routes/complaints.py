"""Complaint intake with automatic classification, owner views and owner mutations."""
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user
from flask_wtf.file import FileField, FileRequired
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from wtforms import FloatField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional

from extensions import db
from models import COMPLAINT_CATEGORIES, COMPLAINT_STATUSES, DEPARTMENT_CATEGORIES, URGENCY_LEVELS, Complaint
from utils.classifier import unavailable_result
from utils.decorators import login_required, roles_required
from utils.errors import NotFound, ValidationError
from utils.image_utils import persist_image, remove_photo
from utils.lifecycle import apply_changes, new_complaint_fields, owner_status_change
from utils.ml_client import classify_submission, get_classifier
from utils.pagination import SortedPageQueryForm, apply_sort, page_params, paginate
from utils.policy import ensure_can_read, ensure_owner
from utils.validation import ApiForm, as_text, blank_to_none, strip_value, validate_form

complaints_bp = Blueprint("complaints", __name__)

SORT_COLUMNS = {
    "createdAt": Complaint.created_at,
    "updatedAt": Complaint.updated_at,
    "status": Complaint.status,
    # Severity rank, not alphabetical.
    "urgency": case({level: rank for rank, level in enumerate(URGENCY_LEVELS)}, value=Complaint.urgency),
    "category": Complaint.category,
}


class ComplaintForm(ApiForm):
    photo = FileField("Photo", validators=[FileRequired(message="Photo is required")])
    description = TextAreaField(
        "Description",
        filters=[as_text, strip_value],
        validators=[
            DataRequired(message="Description is required"),
            Length(min=10, max=1000, message="Description must be between 10 and 1000 characters"),
        ],
    )
    location = StringField(
        "Location",
        filters=[as_text, strip_value],
        validators=[DataRequired(message="Location is required"), Length(max=255)],
    )
    latitude = FloatField("Latitude", validators=[Optional(), NumberRange(min=-90, max=90)])
    longitude = FloatField("Longitude", validators=[Optional(), NumberRange(min=-180, max=180)])


class OwnerStatusForm(ApiForm):
    status = StringField(
        "Status",
        filters=[as_text, strip_value, blank_to_none],
        validators=[DataRequired(message="Status is required")],
    )


class ComplaintListQuery(SortedPageQueryForm):
    status = StringField(
        "Status",
        filters=[strip_value, blank_to_none],
        validators=[Optional(), AnyOf(COMPLAINT_STATUSES, message="Invalid status")],
    )


def get_complaint_or_404(complaint_id: str) -> Complaint:
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        raise NotFound("Complaint not found")
    return complaint


def _list_query_form(form_class=ComplaintListQuery):
    return validate_form(form_class(formdata=request.args), "Invalid query parameters")


def _classify(image_path: str, description: str) -> dict:
    try:
        return classify_submission(get_classifier(), image_path, description)
    except Exception:
        current_app.logger.exception("Classification step failed", extra={"image_path": image_path})
        return unavailable_result()


@complaints_bp.route("/", methods=["POST"], strict_slashes=False)
@login_required
def submit_complaint():
    form = validate_form(ComplaintForm())
    upload_dir = current_app.config["UPLOAD_FOLDER"]
    try:
        stored = persist_image(form.photo.data, upload_dir, current_app.config["MAX_IMAGE_UPLOAD_BYTES"])
    except ValueError as exc:
        raise ValidationError(str(exc), errors={"photo": [str(exc)]}) from exc

    classification = _classify(stored["path"], form.description.data)
    complaint = Complaint(
        **new_complaint_fields(
            current_user.id,
            stored["url"],
            form.description.data,
            form.location.data,
            classification,
            latitude=form.latitude.data,
            longitude=form.longitude.data,
        )
    )
    db.session.add(complaint)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        remove_photo(stored["url"], upload_dir)
        raise

    current_app.logger.info(
        "Complaint submitted",
        extra={"complaint_id": complaint.id, "user_id": current_user.id, "category": complaint.category},
    )
    return (
        jsonify(
            {
                "message": "Complaint submitted successfully",
                "complaint": complaint.to_dict(include_classification=False),
                "mlResults": complaint.classification,
            }
        ),
        201,
    )


@complaints_bp.route("/my-complaints", methods=["GET"])
@login_required
def my_complaints():
    form = _list_query_form()
    query = Complaint.query.filter_by(user_id=current_user.id)
    if form.status.data:
        query = query.filter_by(status=form.status.data)
    query = apply_sort(query, SORT_COLUMNS, form.sort_by.data, form.sort_order.data)
    page, limit = page_params(form)
    return jsonify(paginate(query, page, limit, lambda c: c.to_dict(include_classification=False)))


@complaints_bp.route("/department/<string:dept>", methods=["GET"])
@roles_required("admin", "staff")
def department_complaints(dept):
    if dept in DEPARTMENT_CATEGORIES:
        category = DEPARTMENT_CATEGORIES[dept]
    elif dept in COMPLAINT_CATEGORIES:
        category = dept
    else:
        raise ValidationError("Unknown department", errors={"dept": [f"'{dept}' is not a department or category"]})

    form = _list_query_form()
    query = Complaint.query.filter_by(category=category)
    if form.status.data:
        query = query.filter_by(status=form.status.data)
    query = apply_sort(query, SORT_COLUMNS, form.sort_by.data, form.sort_order.data)
    page, limit = page_params(form)
    payload = paginate(query, page, limit, lambda c: c.to_dict(include_people=True))
    payload["category"] = category
    return jsonify(payload)


@complaints_bp.route("/<string:complaint_id>", methods=["GET"])
@login_required
def get_complaint(complaint_id):
    complaint = get_complaint_or_404(complaint_id)
    ensure_can_read(complaint, current_user)
    return jsonify({"complaint": complaint.to_dict(include_people=True)})


@complaints_bp.route("/<string:complaint_id>/status", methods=["PATCH"])
@login_required
def update_status(complaint_id):
    complaint = get_complaint_or_404(complaint_id)
    ensure_owner(complaint, current_user)
    form = validate_form(OwnerStatusForm())
    apply_changes(complaint, owner_status_change(complaint, form.status.data))
    db.session.commit()
    current_app.logger.info(
        "Complaint status changed by owner",
        extra={"complaint_id": complaint.id, "status": complaint.status},
    )
    return jsonify(
        {
            "message": "Complaint status updated successfully",
            "complaint": {
                "id": complaint.id,
                "status": complaint.status,
                "resolvedAt": complaint.resolved_at.isoformat() if complaint.resolved_at else None,
                "updatedAt": complaint.updated_at.isoformat(),
            },
        }
    )


@complaints_bp.route("/<string:complaint_id>", methods=["DELETE"])
@login_required
def delete_complaint(complaint_id):
    complaint = get_complaint_or_404(complaint_id)
    ensure_owner(complaint, current_user)
    photo = complaint.photo
    db.session.delete(complaint)
    db.session.commit()
    if not remove_photo(photo, current_app.config["UPLOAD_FOLDER"]):
        current_app.logger.info("Complaint photo already missing", extra={"complaint_id": complaint_id})
    current_app.logger.info("Complaint deleted", extra={"complaint_id": complaint_id, "user_id": current_user.id})
    return jsonify({"message": "Complaint deleted successfully"})
