"""Bearer-token helpers shared by the blueprints."""

import datetime
from dataclasses import dataclass
from functools import wraps
from typing import Optional

import jwt
from flask import current_app, g, jsonify, request
from sqlalchemy import select

from ..extensions import db
from ..models import Client, StudioMember
from ..services.permissions import has_permission

INVITE_PURPOSE = "invite"


@dataclass(frozen=True)
class AuthContext:
    """Who is calling, decoded once per request from the bearer token."""

    profile_id: int
    email: str
    is_admin: bool = False

    def role_in(self, studio_id) -> Optional[str]:
        return db.session.scalar(
            select(StudioMember.role)
            .where(StudioMember.studio_id == studio_id)
            .where(StudioMember.profile_id == self.profile_id)
        )


def create_access_token(profile) -> str:
    payload = {
        "user_id": profile.id,
        "email": profile.email,
        "is_admin": bool(profile.is_admin),
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=current_app.config.get("JWT_EXPIRATION_HOURS", 8)),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def create_invite_token(profile, days=7) -> str:
    payload = {
        "user_id": profile.id,
        "email": profile.email,
        "purpose": INVITE_PURPOSE,
        "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=days),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def decode_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError (or a subclass) on bad or expired tokens."""
    return jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"status": "error", "message": "Missing bearer token"}), 401
        try:
            payload = decode_token(token)
        except jwt.ExpiredSignatureError:
            return jsonify({"status": "error", "message": "Token expired"}), 401
        except jwt.InvalidTokenError:
            return jsonify({"status": "error", "message": "Invalid token"}), 401
        if payload.get("purpose") == INVITE_PURPOSE:
            return jsonify({"status": "error", "message": "Invalid token"}), 401

        g.auth = AuthContext(
            profile_id=payload["user_id"],
            email=payload.get("email"),
            is_admin=bool(payload.get("is_admin")),
        )
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @login_required
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not g.auth.is_admin:
            return jsonify({"status": "error", "message": "Admin access required"}), 403
        return view(*args, **kwargs)

    return wrapper


def _forbidden(message):
    return jsonify({"status": "error", "message": message}), 403


def studio_access_error(studio_id, permission=None):
    """None when the caller may work in the studio, otherwise a 403 response.

    Platform admins pass everywhere. Members pass when their role grants
    `permission` (or when no permission is asked for).
    """
    if g.auth.is_admin:
        return None
    role = g.auth.role_in(studio_id) if studio_id else None
    if role is None:
        return _forbidden("You are not a member of this studio")
    if permission and not has_permission(role, permission):
        return _forbidden("Your role does not allow this action")
    return None


def client_outside_studio(client_id, studio_id):
    """True when client_id names a client registered in a different studio."""
    if not client_id:
        return False
    client = db.session.get(Client, client_id)
    return client is not None and str(client.studio_id) != str(studio_id)


def studio_member_required(permission=None):
    """Guards routes whose path carries `studio_id`."""

    def decorator(view):
        @login_required
        @wraps(view)
        def wrapper(*args, **kwargs):
            denied = studio_access_error(kwargs.get("studio_id"), permission)
            if denied:
                return denied
            return view(*args, **kwargs)

        return wrapper

    return decorator


def owner_studio_required(model, id_arg, permission=None):
    """Guards routes addressed by a row id; the row's studio is checked.

    Unknown ids fall through so the view can answer 404.
    """

    def decorator(view):
        @login_required
        @wraps(view)
        def wrapper(*args, **kwargs):
            row = db.session.get(model, kwargs[id_arg])
            if row is not None:
                denied = studio_access_error(_studio_of(row), permission)
                if denied:
                    return denied
            return view(*args, **kwargs)

        return wrapper

    return decorator


def _studio_of(row):
    studio_id = getattr(row, "studio_id", None)
    if studio_id is None and getattr(row, "client", None) is not None:
        return row.client.studio_id
    return studio_id
