# Platform admin: studio provisioning
from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...services import studios as studio_service
from ...utils.auth import admin_required

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/studios", methods=["GET"])
@admin_required
def list_studios():
    return jsonify(studio_service.list_studios()), 200


@admin_bp.route("/studios", methods=["POST"])
@admin_required
def create_studio():
    """
    POST /api/admin/studios
    Purpose: Creates a studio and its MASTER.
    Input: JSON { name, owner_email, owner_name?, slug?, phone?, address?, contact_email? }

    Behavior:
    - Slug omitted:
        → generated from the name.
    - Slug taken:
        → 409.
    - Owner e-mail unknown:
        → profile created and invited to set a password.
    """
    try:
        result = studio_service.provision_studio(request.get_json(force=True) or {})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Studio provisioning failed: {e}")
        return jsonify({"status": "error", "message": "Failed to create studio", "details": str(e)}), 500
    if result["success"]:
        current_app.logger.info(f"Studio {result['data']['id']} provisioned")
        return jsonify(result), 201
    if result.get("conflict"):
        return jsonify(result), 409
    return jsonify(result), 400
