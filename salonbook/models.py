"""Database models for the SalonBook engine."""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that hold a stylist's time. Cancelled never blocks and completed
# appointments are in the past by construction.
BLOCKING_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("point_balance >= 0", name="ck_users_point_balance_non_negative"),
    )

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "customer",
            "stylist",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="customer",
    )
    point_balance = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    stylist_profile = db.relationship("Stylist", back_populates="user", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }


class Stylist(db.Model):
    """Stylist profile with working hours and weekly days off."""

    __tablename__ = "stylists"

    stylist_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, unique=True)
    title = db.Column(db.String(100), nullable=False)
    work_start = db.Column(db.Time, nullable=True)
    work_end = db.Column(db.Time, nullable=True)
    days_off = db.Column(db.JSON, nullable=False, default=list)  # 0=Sunday, 1=Monday, etc.
    # Bumped by every booking write; the conditional bump serialises writers per stylist.
    booking_version = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    user = db.relationship("User", back_populates="stylist_profile")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.stylist_id,
            "user_id": self.user_id,
            "title": self.title,
            "working_hours": {
                "start": self.work_start.strftime("%H:%M") if self.work_start else None,
                "end": self.work_end.strftime("%H:%M") if self.work_end else None,
            },
            "days_off": sorted(self.days_off or []),
            "user": self.user.to_dict_basic() if self.user else None,
        }


class Service(db.Model):
    """Catalog service; read-only input to booking."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "price_dollars": self.price_cents / 100.0,
            "duration_minutes": self.duration_minutes,
        }


class Appointment(db.Model):
    """Customer appointment with a stylist."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    stylist_id = db.Column(db.Integer, db.ForeignKey("stylists.stylist_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(
            *[status.value for status in AppointmentStatus],
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=AppointmentStatus.PENDING.value,
        server_default=AppointmentStatus.PENDING.value,
    )
    total_price_cents = db.Column(db.Integer, nullable=False)
    is_redeemed = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    points_earned = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    customer = db.relationship("User")
    stylist = db.relationship("Stylist")
    service = db.relationship("Service")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "customer_id": self.customer_id,
            "stylist_id": self.stylist_id,
            "service_id": self.service_id,
            "service": {
                "id": self.service.service_id,
                "name": self.service.name,
                "price_cents": self.service.price_cents,
                "duration_minutes": self.service.duration_minutes,
            } if self.service else None,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "status": self.status,
            "total_price_cents": self.total_price_cents,
            "is_redeemed": bool(self.is_redeemed),
            "points_earned": self.points_earned or 0,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
