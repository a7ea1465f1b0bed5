# Studio team members and invitations
from flask import Blueprint, jsonify, request, g

from ...extensions import db
from ...models import StudioMember
from ...services import team as team_service
from ...utils.auth import login_required, studio_member_required

team_bp = Blueprint("team", __name__, url_prefix="/api/team")


def _can_manage(studio_id):
    return g.auth.is_admin or g.auth.role_in(studio_id) == "MASTER"


@team_bp.route("/studios/<int:studio_id>/members", methods=["GET"])
@studio_member_required()
def list_members(studio_id):
    return jsonify(team_service.get_team_members(studio_id)), 200


@team_bp.route("/studios/<int:studio_id>/members", methods=["POST"])
@login_required
def invite(studio_id):
    """
    POST /api/team/studios/<studio_id>/members
    Input: JSON { email, role, full_name?, cpf?, phone?, color?, avatar_url? }

    Behavior:
    - Unknown e-mail:
        → profile created, membership added, invitation e-mail sent.
    - Existing profile:
        → membership added or its role updated.
    - Caller is not the studio MASTER:
        → 403.
    """
    if not _can_manage(studio_id):
        return jsonify({"status": "error", "message": "Only the studio owner can manage the team"}), 403
    data = request.get_json(force=True) or {}
    data["studio_id"] = studio_id
    result = team_service.invite_member(data)
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 201


@team_bp.route("/members/<int:member_id>", methods=["PUT"])
@login_required
def edit_member(member_id):
    member = db.session.get(StudioMember, member_id)
    if not member:
        return jsonify({"error": "Member not found"}), 404
    if not _can_manage(member.studio_id):
        return jsonify({"status": "error", "message": "Only the studio owner can manage the team"}), 403
    result = team_service.update_member(member_id, request.get_json(force=True) or {})
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 200


@team_bp.route("/members/<int:member_id>", methods=["DELETE"])
@login_required
def remove(member_id):
    member = db.session.get(StudioMember, member_id)
    if not member:
        return jsonify({"error": "Member not found"}), 404
    if not _can_manage(member.studio_id):
        return jsonify({"status": "error", "message": "Only the studio owner can manage the team"}), 403
    return jsonify(team_service.remove_member(member_id)), 200
