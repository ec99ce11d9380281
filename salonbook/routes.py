"""HTTP routes for the SalonBook engine."""
from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .booking import BookingOrchestrator, BookingRequest
from .errors import BookingError, ValidationError
from .extensions import db
from .identity import Identity, identity_from_request

bp = Blueprint("api", __name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50


def register_routes(app) -> None:
    app.register_blueprint(bp)


def _orchestrator() -> BookingOrchestrator:
    return BookingOrchestrator.from_config(current_app.config)


def _unauthorized():
    return jsonify({"error": "unauthorized", "message": "A valid bearer token is required"}), 401


def _forbidden():
    return jsonify({"error": "forbidden", "message": "You cannot access this resource"}), 403


def _can_view_user(identity: Identity, user_id: int) -> bool:
    return identity.is_admin or identity.user_id == user_id


def _parse_date_arg(required: bool = True) -> date | None:
    date_str = request.args.get("date")
    if not date_str:
        if required:
            raise ValidationError("date (YYYY-MM-DD) is required")
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise ValidationError("date must be in YYYY-MM-DD format") from None


def _parse_pagination() -> tuple[int, int]:
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(MAX_PAGE_SIZE, max(1, int(request.args.get("limit", DEFAULT_PAGE_SIZE))))
    except ValueError:
        raise ValidationError("page and limit must be integers") from None
    return page, limit


def _page_payload(appointments, page: int, limit: int, total_count: int) -> dict[str, object]:
    return {
        "appointments": [appt.to_dict() for appt in appointments],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total_count,
            "pages": (total_count + limit - 1) // limit,
        },
    }


@bp.errorhandler(BookingError)
def handle_booking_error(exc: BookingError):
    return jsonify(exc.to_dict()), exc.status_code


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


@bp.get("/stylists/<int:stylist_id>/slots")
def get_available_slots(stylist_id: int) -> tuple[dict[str, object], int]:
    """Return the slot grid for a stylist on a given date.
    ---
    tags:
      - Availability
    parameters:
      - name: stylist_id
        in: path
        type: integer
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
    responses:
      200:
        description: Slots for the day, flat and grouped by period. Empty on a day off.
      400:
        description: Missing or malformed date
      404:
        description: Stylist not found
      500:
        description: Existing appointments could not be read; no availability is reported
    """
    target_date = _parse_date_arg()
    grid = _orchestrator().get_available_slots(stylist_id, target_date)

    payload = {
        "stylist_id": stylist_id,
        "date": target_date.isoformat(),
        "slots": [slot.to_dict() for slot in grid],
        "periods": {
            period: [slot.to_dict() for slot in slots]
            for period, slots in grid.by_period().items()
        },
    }
    return jsonify(payload), 200


@bp.get("/stylists/<int:stylist_id>/appointments")
def list_stylist_appointments(stylist_id: int) -> tuple[dict[str, object], int]:
    """List a stylist's appointments, optionally for one date (stylist or admin only).
    ---
    tags:
      - Appointments
    parameters:
      - name: date
        in: query
        type: string
        format: date
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
    responses:
      200:
        description: One page of appointments, newest first, with pagination metadata
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    target_date = _parse_date_arg(required=False)
    page, limit = _parse_pagination()
    appointments, total_count = _orchestrator().list_stylist_appointments(
        identity, stylist_id, target_date, page=page, limit=limit
    )
    return jsonify(_page_payload(appointments, page, limit, total_count)), 200


@bp.post("/appointments")
def create_appointment() -> tuple[dict[str, object], int]:
    """Book a new appointment.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            customer_id:
              type: integer
            stylist_id:
              type: integer
            service_id:
              type: integer
            date:
              type: string
              format: date
            time:
              type: string
              example: "10:30"
            use_points:
              type: boolean
            notes:
              type: string
          required:
            - customer_id
            - stylist_id
            - service_id
            - date
            - time
    responses:
      201:
        description: Appointment created in pending state
      400:
        description: Invalid payload
      409:
        description: Slot no longer available
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if "customer_id" not in payload and not identity.is_admin:
        payload["customer_id"] = identity.user_id

    booking = BookingRequest.from_payload(payload)
    appointment = _orchestrator().book(identity, booking)

    return jsonify({"message": "Appointment booked", "appointment": appointment.to_dict()}), 201


@bp.get("/appointments/<int:appointment_id>")
def get_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Get appointment details.
    ---
    tags:
      - Appointments
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    appointment = _orchestrator().get_appointment(identity, appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<int:appointment_id>")
def rebook_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Change an appointment's time, service or stylist; it returns to pending.
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointment updated and awaiting approval
      400:
        description: Invalid payload
      409:
        description: Slot conflict or appointment can no longer be edited
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    orchestrator = _orchestrator()
    appointment = orchestrator.get_appointment(identity, appointment_id)
    booking = BookingRequest.for_edit(appointment, payload)
    appointment = orchestrator.rebook(identity, appointment_id, booking)

    return jsonify({"message": "Appointment updated", "appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<int:appointment_id>/approve")
def approve_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Confirm a pending appointment (stylist or admin).
    ---
    tags:
      - Appointments
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    appointment = _orchestrator().approve(identity, appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<int:appointment_id>/complete")
def complete_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Complete a confirmed appointment and award loyalty points once.
    ---
    tags:
      - Appointments
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    appointment = _orchestrator().complete(identity, appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<int:appointment_id>/cancel")
def cancel_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Cancel a pending or confirmed appointment (admin only).
    ---
    tags:
      - Appointments
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()

    appointment = _orchestrator().cancel(identity, appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.get("/users/<int:user_id>/loyalty")
def get_user_loyalty(user_id: int) -> tuple[dict[str, object], int]:
    """Get a customer's loyalty point balance.
    ---
    tags:
      - Loyalty
    responses:
      200:
        description: Current balance
      404:
        description: User not found
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()
    if not _can_view_user(identity, user_id):
        return _forbidden()

    balance = _orchestrator().get_customer_loyalty_balance(user_id)
    return jsonify({"user_id": user_id, "points_balance": balance}), 200


@bp.get("/users/<int:user_id>/appointments")
def list_user_appointments(user_id: int) -> tuple[dict[str, object], int]:
    """List a customer's appointments, newest first.
    ---
    tags:
      - Appointments
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()
    if not _can_view_user(identity, user_id):
        return _forbidden()

    page, limit = _parse_pagination()
    appointments, total_count = _orchestrator().list_customer_appointments(user_id, page=page, limit=limit)
    return jsonify(_page_payload(appointments, page, limit, total_count)), 200


@bp.get("/users/<int:user_id>/stats")
def get_user_stats(user_id: int) -> tuple[dict[str, object], int]:
    """Visit count and spend across confirmed and completed appointments.
    ---
    tags:
      - Loyalty
    """
    identity = identity_from_request()
    if identity is None:
        return _unauthorized()
    if not _can_view_user(identity, user_id):
        return _forbidden()

    stats = _orchestrator().customer_stats(user_id)
    return jsonify({"user_id": user_id, **stats}), 200
