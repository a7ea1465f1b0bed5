# Performed/in-progress service records, consent signatures and checkout
from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models import Client, Session
from ...services import sessions as session_service
from ...services.loyalty_ledger import checkout_session
from ...utils.auth import (
    client_outside_studio,
    login_required,
    owner_studio_required,
    studio_access_error,
    studio_member_required,
)

sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


def _failure_status(result):
    return 404 if "não encontrada" in result["error"]["message"] else 400


@sessions_bp.route("/studio/<int:studio_id>", methods=["GET"])
@studio_member_required()
def list_sessions(studio_id):
    """
    GET /api/sessions/studio/<studio_id>?page=&limit=&search=&status=&professional_id=&order_by=&order_direction=
    Purpose: Paginated session list with the total count for the same filters.
    """
    result = session_service.get_sessions(
        studio_id,
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
        search=request.args.get("search"),
        status=request.args.get("status"),
        order_by=request.args.get("order_by", "performed_date"),
        order_direction=request.args.get("order_direction", "desc"),
        professional_id=request.args.get("professional_id", type=int),
    )
    return jsonify(result), 200


@sessions_bp.route("/<int:session_id>", methods=["GET"])
@owner_studio_required(Session, "session_id")
def get_session(session_id):
    session = session_service.get_session_by_id(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404
    return jsonify(session), 200


@sessions_bp.route("", methods=["POST"])
@login_required
def add_session():
    data = request.get_json(force=True) or {}
    if data.get("studio_id"):
        denied = studio_access_error(data["studio_id"], "can_create_session")
        if denied:
            return denied
        if client_outside_studio(data.get("client_id"), data["studio_id"]):
            return jsonify({"error": "Client does not belong to this studio"}), 400
    try:
        result = session_service.create_session(data)
        if not result["success"]:
            return jsonify(result), 400
        return jsonify(result), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create session: {e}")
        return jsonify({"error": "Failed to create session", "details": str(e)}), 500


@sessions_bp.route("/<int:session_id>", methods=["PUT"])
@owner_studio_required(Session, "session_id")
def edit_session(session_id):
    data = request.get_json(force=True) or {}
    result = session_service.update_session(session_id, data)
    if not result["success"]:
        return jsonify(result), _failure_status(result)
    return jsonify(result), 200


@sessions_bp.route("/client/<int:client_id>", methods=["GET"])
@owner_studio_required(Client, "client_id")
def list_client_sessions(client_id):
    result = session_service.get_sessions_by_client(
        client_id,
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
    )
    return jsonify(result), 200


@sessions_bp.route("/client/<int:client_id>/metrics", methods=["GET"])
@owner_studio_required(Client, "client_id")
def client_metrics(client_id):
    return jsonify(session_service.get_client_metrics(client_id)), 200


@sessions_bp.route("/<int:session_id>/consent", methods=["POST"])
@owner_studio_required(Session, "session_id")
def upload_consent(session_id):
    """
    POST /api/sessions/<session_id>/consent  (multipart, field "signature")
    Purpose: Stores the client's signature image and links it to the session.
    """
    if "signature" not in request.files:
        return jsonify({"error": "No signature file provided"}), 400
    try:
        result = session_service.attach_consent_signature(
            session_id, request.files["signature"]
        )
    except Exception as e:
        current_app.logger.error(f"Signature upload failed for session {session_id}: {e}")
        return jsonify({"error": "Failed to upload signature", "details": str(e)}), 500
    if not result["success"]:
        return jsonify(result), _failure_status(result)
    return jsonify(result), 200


@sessions_bp.route("/<int:session_id>/checkout", methods=["POST"])
@owner_studio_required(Session, "session_id")
def checkout(session_id):
    """
    POST /api/sessions/<session_id>/checkout
    Input: JSON { price, use_loyalty }

    Behavior:
    - use_loyalty with a positive balance:
        → DEBIT of min(balance, price) before payment.
    - Loyalty program active:
        → CREDIT on the amount actually paid, expiring after the studio's validity days.
    - Session ends completed and paid.
    """
    data = request.get_json(force=True) or {}
    if data.get("price") is None:
        return jsonify({"error": "price is required"}), 400
    try:
        result = checkout_session(session_id, data["price"], bool(data.get("use_loyalty")))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Checkout failed for session {session_id}: {e}")
        return jsonify({"error": "Checkout failed", "details": str(e)}), 500
    if not result["success"]:
        return jsonify(result), _failure_status(result)
    return jsonify(result), 200
