# Studio WhatsApp instance lifecycle
from flask import Blueprint, jsonify, current_app

from ...extensions import db
from ...models import Studio
from ...services.whatsapp_client import WhatsAppGateway, provision_instance
from ...utils.auth import studio_member_required

whatsapp_bp = Blueprint("whatsapp", __name__, url_prefix="/api/whatsapp")

# Gateway state -> studios.whatsapp_status
STATE_TO_STATUS = {"open": "connected", "close": "disconnected", "connecting": "connecting"}


def get_gateway():
    return WhatsAppGateway.from_config(current_app.config)


def _studio_or_404(studio_id):
    studio = db.session.get(Studio, studio_id)
    if not studio:
        return None, (jsonify({"error": "Studio not found"}), 404)
    if not studio.whatsapp_instance_name or not studio.whatsapp_token:
        return studio, (jsonify({"error": "WhatsApp instance not provisioned"}), 400)
    return studio, None


@whatsapp_bp.route("/studios/<int:studio_id>/provision", methods=["POST"])
@studio_member_required("can_access_settings")
def provision(studio_id):
    """
    POST /api/whatsapp/studios/<studio_id>/provision
    Purpose: Creates the studio's gateway instance and stores its credentials.
    """
    studio = db.session.get(Studio, studio_id)
    if not studio:
        return jsonify({"error": "Studio not found"}), 404
    result = provision_instance(studio, get_gateway())
    if not result["success"]:
        current_app.logger.error(
            f"WhatsApp provisioning failed for studio {studio_id}: {result['error']['message']}"
        )
        return jsonify(result), 502
    return jsonify(result), 201


@whatsapp_bp.route("/studios/<int:studio_id>/connect", methods=["POST"])
@studio_member_required("can_access_settings")
def connect(studio_id):
    """Returns a QR code or pairing code until the number is paired."""
    studio, error = _studio_or_404(studio_id)
    if error:
        return error
    result = get_gateway().connect_instance(studio.whatsapp_instance_name, studio.whatsapp_token)
    if result["status"] == "CONNECTED" and studio.whatsapp_status != "connected":
        studio.whatsapp_status = "connected"
        db.session.commit()
    return jsonify(result), 200


@whatsapp_bp.route("/studios/<int:studio_id>/state", methods=["GET"])
@studio_member_required()
def state(studio_id):
    studio, error = _studio_or_404(studio_id)
    if error:
        return error
    current = get_gateway().get_connection_state(
        studio.whatsapp_instance_name, studio.whatsapp_token
    )
    status = STATE_TO_STATUS.get(current)
    if status and status != studio.whatsapp_status:
        studio.whatsapp_status = status
        db.session.commit()
    return jsonify({"state": current, "status": studio.whatsapp_status}), 200


@whatsapp_bp.route("/studios/<int:studio_id>/logout", methods=["POST"])
@studio_member_required("can_access_settings")
def logout(studio_id):
    studio, error = _studio_or_404(studio_id)
    if error:
        return error
    result = get_gateway().logout_instance(studio.whatsapp_instance_name, studio.whatsapp_token)
    if not result["success"]:
        return jsonify(result), 502
    studio.whatsapp_status = "disconnected"
    db.session.commit()
    return jsonify(result), 200
