from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select
from ..extensions import db
from ..models import Profile
from ..services.permissions import get_permissions
from ..services.studios import get_user_studios
from ..utils.auth import (
    INVITE_PURPOSE,
    create_access_token,
    decode_token,
    login_required,
)
import bcrypt
import jwt

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Staff login
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: JWT issued
      400:
        description: Missing credentials
      401:
        description: Invalid credentials
    """
    try:
        data = request.get_json(force=True)
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not email or not password:
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 400

        profile = db.session.scalar(select(Profile).where(Profile.email == email))
        if not profile or not profile.password_hash:
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        if not bcrypt.checkpw(password.encode("utf-8"), profile.password_hash.encode("utf-8")):
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": create_access_token(profile),
            "user": {
                "id": profile.id,
                "email": profile.email,
                "full_name": profile.full_name,
                "is_admin": bool(profile.is_admin),
            },
        }), 200

    except Exception as e:
        current_app.logger.error(f"Login failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/accept-invite", methods=["POST"])
def accept_invite():
    """
    POST /api/auth/accept-invite
    Purpose: Sets the first password of an invited team member.
    Input: JSON { token, password }

    Behavior:
    - Valid invitation token and password of at least 6 characters:
        → Stores the bcrypt hash and returns a regular access token.
    - Expired or tampered token:
        → 401.
    """
    data = request.get_json(force=True) or {}
    token = data.get("token")
    password = data.get("password") or ""
    if not token or len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            "status": "error",
            "message": f"Token and a password of at least {MIN_PASSWORD_LENGTH} characters are required"
        }), 400

    try:
        payload = decode_token(token)
    except jwt.InvalidTokenError:
        return jsonify({"status": "error", "message": "Invalid or expired invitation"}), 401
    if payload.get("purpose") != INVITE_PURPOSE:
        return jsonify({"status": "error", "message": "Invalid or expired invitation"}), 401

    profile = db.session.get(Profile, payload["user_id"])
    if not profile:
        return jsonify({"status": "error", "message": "Profile not found"}), 404

    profile.password_hash = hash_password(password)
    db.session.commit()
    current_app.logger.info(f"Profile {profile.id} accepted invitation")
    return jsonify({
        "status": "success",
        "message": "Password set",
        "token": create_access_token(profile),
    }), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def get_me():
    profile = db.session.get(Profile, g.auth.profile_id)
    if not profile:
        return jsonify({"status": "error", "message": "Profile not found"}), 404
    return jsonify({
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "display_color": profile.display_color,
        "is_admin": bool(profile.is_admin),
        "studios": get_user_studios(profile.id),
    }), 200


@auth_bp.route("/permissions/<int:studio_id>", methods=["GET"])
@login_required
def get_studio_permissions(studio_id):
    """
    GET /api/auth/permissions/<studio_id>
    Purpose: Feature flags of the caller inside one studio.

    Behavior:
    - Member of the studio:
        → { role, permissions } for that role.
    - Not a member:
        → role null and every flag false.
    """
    role = g.auth.role_in(studio_id)
    return jsonify({"role": role, "permissions": get_permissions(role)}), 200
