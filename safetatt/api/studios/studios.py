# Studio settings, public slug and logo
from flask import Blueprint, jsonify, request, current_app, g

from ...services import studios as studio_service
from ...utils.auth import login_required, studio_member_required

studios_bp = Blueprint("studios", __name__, url_prefix="/api/studios")


def _is_owner(studio_id):
    return g.auth.is_admin or g.auth.role_in(studio_id) == "MASTER"


def _owner_only():
    return jsonify({"status": "error", "message": "Only the studio owner can change settings"}), 403


@studios_bp.route("/mine", methods=["GET"])
@login_required
def my_studios():
    """Studios the caller belongs to, with the caller's role in each."""
    return jsonify(studio_service.get_user_studios(g.auth.profile_id)), 200


@studios_bp.route("/slug-availability", methods=["GET"])
def slug_availability():
    """
    GET /api/studios/slug-availability?slug=&studio_id=
    Purpose: Whether a public slug is free. Lookup failures report it as taken.
    """
    slug = (request.args.get("slug") or "").strip()
    if not slug:
        return jsonify({"error": "slug is required"}), 400
    available = studio_service.check_slug_availability(
        slug, request.args.get("studio_id", type=int)
    )
    return jsonify({"slug": slug, "available": available}), 200


@studios_bp.route("/<int:studio_id>", methods=["GET"])
@studio_member_required()
def get_settings(studio_id):
    studio = studio_service.get_studio_settings(studio_id)
    if not studio:
        return jsonify({"error": "Studio not found"}), 404
    return jsonify(studio), 200


@studios_bp.route("/<int:studio_id>", methods=["PUT"])
@login_required
def update_settings(studio_id):
    if not _is_owner(studio_id):
        return _owner_only()
    result = studio_service.update_studio_settings(studio_id, request.get_json(force=True) or {})
    if result["success"]:
        return jsonify(result), 200
    if result.get("conflict"):
        return jsonify(result), 409
    return jsonify(result), 404


@studios_bp.route("/<int:studio_id>/logo", methods=["POST"])
@login_required
def upload_logo(studio_id):
    if not _is_owner(studio_id):
        return _owner_only()
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400
    try:
        result = studio_service.upload_studio_logo(studio_id, request.files["file"])
    except Exception as e:
        current_app.logger.error(f"Logo upload failed for studio {studio_id}: {e}")
        return jsonify({"error": "Failed to upload logo", "details": str(e)}), 500
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 200
