"""Core data models for accounts and citizen complaints."""
import uuid
from datetime import datetime

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


ROLES: tuple[str, ...] = (
	"user",
	"staff",
	"admin",
)

TRIAGE_ROLES: frozenset[str] = frozenset({"staff", "admin"})

DEPARTMENTS: tuple[str, ...] = (
	"Sanitation",
	"Water",
	"Roads",
	"Electricity",
	"Other",
)

COMPLAINT_CATEGORIES: tuple[str, ...] = (
	"Road Issues",
	"Water Supply",
	"Electricity",
	"Sanitation",
	"Street Lighting",
	"Public Transport",
	"Parks & Recreation",
	"Noise Pollution",
	"Air Pollution",
	"Waste Management",
	"Traffic Management",
	"Public Safety",
	"Healthcare",
	"Education",
	"Other",
)

URGENCY_LEVELS: tuple[str, ...] = (
	"low",
	"medium",
	"high",
)

COMPLAINT_STATUSES: tuple[str, ...] = (
	"pending",
	"noted",
	"in-progress",
	"resolved",
	"rejected",
)

DEPARTMENT_CATEGORIES: dict[str, str] = {
	"Roads": "Road Issues",
	"Water": "Water Supply",
	"Electricity": "Electricity",
	"Sanitation": "Sanitation",
	"Other": "Other",
}


def _quoted(values) -> str:
	return ",".join(f"'{value}'" for value in values)


def _isoformat(value: datetime | None) -> str | None:
	return value.isoformat() if value else None


class User(db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(50), nullable=False)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	phone = db.Column(db.String(32), nullable=True)
	password_hash = db.Column(db.String(255), nullable=False)
	role = db.Column(db.String(10), nullable=False, default="user", index=True)
	department = db.Column(db.String(20), nullable=True)
	is_verified = db.Column(db.Boolean, default=False, nullable=False, index=True)
	signup_pending = db.Column(db.Boolean, default=False, nullable=False)
	otp_hash = db.Column(db.String(255), nullable=True)
	otp_expires_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(f"role IN ({_quoted(ROLES)})", name="ck_user_role_valid"),
		db.CheckConstraint(
			f"department IS NULL OR department IN ({_quoted(DEPARTMENTS)})",
			name="ck_user_department_valid",
		),
		db.CheckConstraint(
			"(role = 'user' AND department IS NULL) OR (role = 'staff' AND department IS NOT NULL) OR role = 'admin'",
			name="ck_user_department_matches_role",
		),
	)

	complaints = db.relationship(
		"Complaint",
		back_populates="user",
		foreign_keys="Complaint.user_id",
		order_by="Complaint.created_at.desc()",
	)

	@property
	def is_triage(self) -> bool:
		return self.role in TRIAGE_ROLES

	@property
	def is_admin(self) -> bool:
		return self.role == "admin"

	def to_dict(self) -> dict:
		"""Outward representation; credential and OTP columns never leave the model."""
		return {
			"id": self.id,
			"name": self.name,
			"email": self.email,
			"phone": self.phone,
			"role": self.role,
			"department": self.department,
			"isVerified": self.is_verified,
			"createdAt": _isoformat(self.created_at),
			"updatedAt": _isoformat(self.updated_at),
		}

	def __repr__(self) -> str:
		return f"<User {self.email} ({self.role})>"


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	photo = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	location = db.Column(db.String(255), nullable=False)
	latitude = db.Column(db.Float, nullable=True)
	longitude = db.Column(db.Float, nullable=True)
	category = db.Column(db.String(50), nullable=False, index=True)
	urgency = db.Column(db.String(10), nullable=False, default="medium", index=True)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	classification = db.Column(db.JSON, nullable=True)
	admin_notes = db.Column(db.String(500), nullable=True)
	resolved_at = db.Column(db.DateTime, nullable=True)
	resolved_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
		index=True,
	)

	__table_args__ = (
		db.CheckConstraint(f"category IN ({_quoted(COMPLAINT_CATEGORIES)})", name="ck_complaint_category_valid"),
		db.CheckConstraint(f"urgency IN ({_quoted(URGENCY_LEVELS)})", name="ck_complaint_urgency_valid"),
		db.CheckConstraint(f"status IN ({_quoted(COMPLAINT_STATUSES)})", name="ck_complaint_status_valid"),
		db.Index("ix_complaints_user_created", "user_id", "created_at"),
		db.Index("ix_complaints_status_urgency", "status", "urgency"),
	)

	user = db.relationship("User", back_populates="complaints", foreign_keys=[user_id])
	resolver = db.relationship("User", foreign_keys=[resolved_by])

	@property
	def coordinates(self) -> dict | None:
		if self.latitude is None or self.longitude is None:
			return None
		return {"lat": self.latitude, "lng": self.longitude}

	def to_dict(self, include_classification: bool = True, include_people: bool = False) -> dict:
		payload = {
			"id": self.id,
			"user": self.user_id,
			"photo": self.photo,
			"description": self.description,
			"location": self.location,
			"coordinates": self.coordinates,
			"category": self.category,
			"urgency": self.urgency,
			"status": self.status,
			"adminNotes": self.admin_notes,
			"resolvedAt": _isoformat(self.resolved_at),
			"resolvedBy": self.resolved_by,
			"createdAt": _isoformat(self.created_at),
			"updatedAt": _isoformat(self.updated_at),
		}
		if include_classification:
			payload["mlResults"] = self.classification
		if include_people:
			if self.user:
				payload["user"] = {"id": self.user.id, "name": self.user.name, "email": self.user.email}
			if self.resolver:
				payload["resolvedBy"] = {"id": self.resolver.id, "name": self.resolver.name}
		return payload

	def __repr__(self) -> str:
		return f"<Complaint {self.id} [{self.status}]>"
