# Cashback ledger: balances, history, staff adjustments and program settings
from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models import Client
from ...services import loyalty_ledger as ledger
from ...utils.auth import (
    client_outside_studio,
    login_required,
    owner_studio_required,
    studio_access_error,
    studio_member_required,
)
from ...utils.datetime_utils import isoformat

loyalty_bp = Blueprint("loyalty", __name__, url_prefix="/api/loyalty")

LOYALTY = "can_access_loyalty"


def _ledger_target_error(data):
    """Checks the studio/client pair named in a write request."""
    if not data.get("studio_id") or not data.get("client_id"):
        return jsonify({"status": "error", "message": "studio_id and client_id are required"}), 400
    denied = studio_access_error(data["studio_id"], LOYALTY)
    if denied:
        return denied
    if client_outside_studio(data["client_id"], data["studio_id"]):
        return jsonify({"status": "error", "message": "Client does not belong to this studio"}), 400
    return None

@loyalty_bp.route("/clients/<int:client_id>/balance", methods=["GET"])
@owner_studio_required(Client, "client_id", LOYALTY)
def get_balance(client_id):
    """
    Spendable cashback of a client
    ---
    tags:
      - Loyalty
    parameters:
      - in: path
        name: client_id
        type: integer
        required: true
    responses:
      200:
        description: "{balance, next_expiration}"
    """
    result = ledger.get_client_balance(client_id)
    return jsonify({
        "balance": result["balance"],
        "next_expiration": isoformat(result["next_expiration"]),
    }), 200


@loyalty_bp.route("/clients/<int:client_id>/history", methods=["GET"])
@owner_studio_required(Client, "client_id", LOYALTY)
def get_history(client_id):
    return jsonify(ledger.get_client_history(client_id)), 200



@loyalty_bp.route("/transactions", methods=["POST"])
@login_required
def add_transaction():
    """
    POST /api/loyalty/transactions
    Input: JSON { studio_id, client_id, type, amount, description?, expires_at?, appointment_id? }

    Behavior:
    - Valid type and positive amount:
        → 201 with the stored row, stamped with the current time.
    - expires_at on anything but CREDIT or MANUAL_ADJUST:
        → 400.
    - Body carries created_at:
        → 400; the ledger is append-only and dated by the server.
    - Caller outside the studio, or without loyalty access:
        → 403.
    """
    data = request.get_json(force=True) or {}
    error = _ledger_target_error(data)
    if error:
        return error
    if "created_at" in data:
        return jsonify({"status": "error", "message": "created_at is assigned by the server"}), 400
    record = ledger.create_transaction(data)
    if record is None:
        return jsonify({"status": "error", "message": "Transaction rejected"}), 400
    return jsonify(ledger.serialize_transaction(record)), 201


@loyalty_bp.route("/adjustments", methods=["POST"])
@login_required
def manual_adjustment():
    """Staff correction. Body: { studio_id, client_id, direction: CREDIT|DEBIT, amount, reason? }"""
    data = request.get_json(force=True) or {}
    error = _ledger_target_error(data)
    if error:
        return error
    result = ledger.apply_manual_adjustment(
        data["studio_id"],
        data["client_id"],
        (data.get("direction") or "").upper(),
        data.get("amount"),
        data.get("reason"),
    )
    if not result["success"]:
        return jsonify(result), 400
    current_app.logger.info(
        f"Manual {data.get('direction')} of {data.get('amount')} for client {data['client_id']}"
    )
    return jsonify(result), 201


@loyalty_bp.route("/studios/<int:studio_id>/metrics", methods=["GET"])
@studio_member_required(LOYALTY)
def get_metrics(studio_id):
    return jsonify(ledger.get_dashboard_metrics(studio_id)), 200


@loyalty_bp.route("/studios/<int:studio_id>/clients", methods=["GET"])
@studio_member_required(LOYALTY)
def get_clients(studio_id):
    return jsonify(ledger.get_clients_with_loyalty(studio_id)), 200


@loyalty_bp.route("/studios/<int:studio_id>/settings", methods=["GET"])
@studio_member_required(LOYALTY)
def get_settings(studio_id):
    return jsonify(ledger.get_settings(studio_id)), 200


@loyalty_bp.route("/studios/<int:studio_id>/settings", methods=["PUT"])
@studio_member_required("can_access_settings")
def update_settings(studio_id):
    try:
        data = request.get_json(force=True) or {}
        result = ledger.upsert_settings(studio_id, data)
        if not result["success"]:
            return jsonify(result), 400
        return jsonify(result), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update loyalty settings for studio {studio_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update settings", "details": str(e)}), 500
