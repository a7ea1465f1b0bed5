# Client CRM: records, search and staff notes
from flask import Blueprint, jsonify, request, current_app, g

from ...extensions import db
from ...models import Client, ClientNote, Profile
from ...services import clients as client_service
from ...utils.auth import (
    login_required,
    owner_studio_required,
    studio_access_error,
    studio_member_required,
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.route("/studio/<int:studio_id>", methods=["GET"])
@studio_member_required()
def list_clients(studio_id):
    """
    GET /api/clients/studio/<studio_id>
    Purpose: All clients of a studio with visit count, total spent and last visit.
    """
    return jsonify(client_service.get_clients(studio_id)), 200


@clients_bp.route("/studio/<int:studio_id>/search", methods=["GET"])
@studio_member_required()
def search(studio_id):
    """Name, e-mail or CPF contains `q`; fewer than 2 characters returns []."""
    return jsonify(client_service.search_clients(request.args.get("q", ""), studio_id)), 200


@clients_bp.route("/<int:client_id>", methods=["GET"])
@owner_studio_required(Client, "client_id")
def get_client(client_id):
    client = client_service.get_client_by_id(client_id)
    if not client:
        return jsonify({"error": "Client not found"}), 404
    return jsonify(client), 200


@clients_bp.route("", methods=["POST"])
@login_required
def add_client():
    data = request.get_json(force=True) or {}
    if data.get("studio_id"):
        denied = studio_access_error(data["studio_id"], "can_add_client")
        if denied:
            return denied
    try:
        result = client_service.create_client(data)
        if not result["success"]:
            return jsonify(result), 400
        return jsonify(result), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create client: {e}")
        return jsonify({"error": "Failed to create client", "details": str(e)}), 500


@clients_bp.route("/<int:client_id>", methods=["PUT"])
@owner_studio_required(Client, "client_id")
def edit_client(client_id):
    try:
        result = client_service.update_client(client_id, request.get_json(force=True) or {})
    except ValueError as e:
        return jsonify({"error": "Invalid data", "details": str(e)}), 400
    if not result["success"]:
        return jsonify(result), 404
    return jsonify(result), 200


@clients_bp.route("/<int:client_id>/notes", methods=["GET"])
@owner_studio_required(Client, "client_id")
def list_notes(client_id):
    return jsonify(client_service.get_notes(client_id)), 200


@clients_bp.route("/<int:client_id>/notes", methods=["POST"])
@owner_studio_required(Client, "client_id")
def add_note(client_id):
    data = request.get_json(force=True) or {}
    author = data.get("author_name")
    if not author:
        profile = db.session.get(Profile, g.auth.profile_id)
        author = profile.full_name if profile else None
    result = client_service.add_note(
        client_id, data.get("content"), data.get("type") or "general", author
    )
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 201


@clients_bp.route("/notes/<int:note_id>", methods=["PUT"])
@owner_studio_required(ClientNote, "note_id")
def edit_note(note_id):
    data = request.get_json(force=True) or {}
    if not data.get("content"):
        return jsonify({"error": "content is required"}), 400
    result = client_service.update_note(note_id, data["content"])
    if not result["success"]:
        return jsonify(result), 404
    return jsonify(result), 200


@clients_bp.route("/notes/<int:note_id>", methods=["DELETE"])
@owner_studio_required(ClientNote, "note_id")
def remove_note(note_id):
    result = client_service.delete_note(note_id)
    if not result["success"]:
        return jsonify(result), 404
    return jsonify(result), 200
