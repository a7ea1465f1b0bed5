# Book, reschedule, cancel and list studio appointments
from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models import Appointment
from ...services import booking
from ...utils.auth import (
    client_outside_studio,
    login_required,
    owner_studio_required,
    studio_access_error,
    studio_member_required,
)

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _foreign_client():
    return jsonify({"error": "Client does not belong to this studio"}), 400


def _result_response(result, success_status=200):
    if result.get("success"):
        return jsonify(result), success_status
    message = result["error"]["message"]
    if message in (booking.CREATE_CONFLICT_MESSAGE, booking.UPDATE_CONFLICT_MESSAGE):
        return jsonify(result), 409
    if message == "Agendamento não encontrado.":
        return jsonify(result), 404
    return jsonify(result), 400


@appointments_bp.route("/<int:studio_id>", methods=["GET"])
@studio_member_required()
def list_appointments(studio_id):
    """
    GET /api/appointments/<studio_id>?start_date=&end_date=&professional_id=
    Purpose: Agenda of a studio, optionally narrowed to a date range and a professional.

    Behavior:
    - Always returns a list ordered by date and time (empty when nothing matches).
    """
    try:
        results = booking.get_appointments(
            studio_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            professional_id=request.args.get("professional_id", type=int),
        )
        return jsonify(results), 200
    except ValueError as e:
        return jsonify({"error": "Invalid date", "details": str(e)}), 400


@appointments_bp.route("/<int:studio_id>/day", methods=["GET"])
@studio_member_required()
def list_day(studio_id):
    """
    GET /api/appointments/<studio_id>/day?date=YYYY-MM-DD
    Purpose: One calendar day of the studio agenda.
    """
    day = request.args.get("date")
    if not day:
        return jsonify({"error": "date is required"}), 400
    try:
        return jsonify(booking.get_by_date(day, studio_id)), 200
    except ValueError as e:
        return jsonify({"error": "Invalid date", "details": str(e)}), 400


@appointments_bp.route("/<int:studio_id>/upcoming", methods=["GET"])
@studio_member_required()
def list_upcoming(studio_id):
    """Next three open appointments from now on."""
    return jsonify(booking.get_upcoming_appointments(studio_id)), 200


@appointments_bp.route("/conflicts", methods=["POST"])
@login_required
def check_conflict():
    """
    Check a slot against a professional's agenda
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [studio_id, professional_id, start_time, end_time]
          properties:
            studio_id:
              type: integer
            professional_id:
              type: integer
            start_time:
              type: string
              format: date-time
            end_time:
              type: string
              format: date-time
            exclude_appointment_id:
              type: integer
    responses:
      200:
        description: "{conflict: bool}"
      400:
        description: Missing or invalid fields
    """
    data = request.get_json(force=True) or {}
    required = ("studio_id", "professional_id", "start_time", "end_time")
    missing = [field for field in required if not data.get(field)]
    if missing:
        return jsonify({"error": f"Missing fields: {', '.join(missing)}"}), 400
    denied = studio_access_error(data["studio_id"])
    if denied:
        return denied
    try:
        result = booking.check_time_conflict(
            data["studio_id"],
            data["professional_id"],
            data["start_time"],
            data["end_time"],
            exclude_appointment_id=data.get("exclude_appointment_id"),
        )
    except ValueError as e:
        return jsonify({"error": "Invalid date", "details": str(e)}), 400
    if "error" in result:
        return jsonify(result), 500
    return jsonify(result), 200


@appointments_bp.route("/add", methods=["POST"])
@login_required
def add_appointment():
    """
    POST /api/appointments/add
    Purpose: Books an appointment.
    Input: JSON { studio_id, client_id, professional_id, start_time, end_time?, status?, notes?, price?, appointment_type? }

    Behavior:
    - Slot free (or no professional given):
        → 201 with the stored appointment; duration defaults to 60 minutes.
    - Professional already busy in that window:
        → 409 "Conflito de horário detectado para este profissional."
    - Missing studio or start time, or a client from another studio:
        → 400.
    - Caller outside the studio:
        → 403.
    """
    data = request.get_json(force=True) or {}
    if data.get("studio_id"):
        denied = studio_access_error(data["studio_id"])
        if denied:
            return denied
        if client_outside_studio(data.get("client_id"), data["studio_id"]):
            return _foreign_client()
    try:
        return _result_response(booking.create_appointment(data), 201)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create appointment: {e}")
        return jsonify({"error": "Failed to create appointment", "details": str(e)}), 500


@appointments_bp.route("/<int:appointment_id>", methods=["PUT"])
@owner_studio_required(Appointment, "appointment_id")
def edit_appointment(appointment_id):
    """Partial update; a new time or professional is re-checked for conflicts."""
    data = request.get_json(force=True) or {}
    appointment = db.session.get(Appointment, appointment_id)
    if appointment and client_outside_studio(data.get("client_id"), appointment.studio_id):
        return _foreign_client()
    try:
        return _result_response(booking.update_appointment(appointment_id, data))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update appointment {appointment_id}: {e}")
        return jsonify({"error": "Failed to update appointment", "details": str(e)}), 500


@appointments_bp.route("/<int:appointment_id>/status", methods=["PUT"])
@owner_studio_required(Appointment, "appointment_id")
def change_status(appointment_id):
    data = request.get_json(force=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status is required"}), 400
    return _result_response(booking.update_appointment_status(appointment_id, data["status"]))


@appointments_bp.route("/<int:appointment_id>", methods=["DELETE"])
@owner_studio_required(Appointment, "appointment_id")
def remove_appointment(appointment_id):
    return _result_response(booking.delete_appointment(appointment_id))
