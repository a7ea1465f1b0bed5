# Health questionnaire answered before a session
from flask import Blueprint, jsonify, request

from ...extensions import db
from ...models import Appointment
from ...services import anamnesis as anamnesis_service
from ...utils.auth import owner_studio_required

anamnesis_bp = Blueprint("anamnesis", __name__, url_prefix="/api/anamnesis")


@anamnesis_bp.route("/appointments/<int:appointment_id>", methods=["GET"])
@owner_studio_required(Appointment, "appointment_id")
def get_record(appointment_id):
    record = anamnesis_service.get_record(appointment_id)
    if record is None:
        return jsonify({"error": "No anamnesis for this appointment"}), 404
    return jsonify(record), 200


@anamnesis_bp.route("/appointments/<int:appointment_id>", methods=["PUT"])
@owner_studio_required(Appointment, "appointment_id")
def save_record(appointment_id):
    """
    PUT /api/anamnesis/appointments/<appointment_id>
    Input: JSON { answers: {question: bool}, observations?, studio_id }
    """
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return jsonify({"error": "Appointment not found"}), 404
    data = request.get_json(force=True) or {}
    if data.get("studio_id") and str(data["studio_id"]) != str(appointment.studio_id):
        return jsonify({"error": "Appointment belongs to another studio"}), 400
    result = anamnesis_service.save_answers(
        appointment_id,
        data.get("answers") or {},
        data.get("observations") or "",
        data.get("studio_id"),
    )
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 200
