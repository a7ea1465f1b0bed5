import logging

from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Studio, StudioMember
from ..utils.auth import create_invite_token
from .email_service import EmailService
from .studios import find_or_create_profile

MEMBER_ROLES = ("MASTER", "ARTIST", "PIERCER", "RECEPTIONIST")
DEFAULT_COLOR = "#92FFAD"
# Request keys -> Profile columns
PROFILE_UPDATES = {
    "full_name": "full_name",
    "email": "email",
    "phone": "phone",
    "cpf": "cpf",
    "color": "display_color",
    "avatar_url": "avatar_url",
}

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def serialize_member(member):
    profile = member.profile
    return {
        "id": member.id,
        "profile_id": member.profile_id,
        "studio_id": member.studio_id,
        "role": member.role,
        "commission_percentage": member.commission_percentage,
        "full_name": (profile.full_name if profile else None) or "Usuário",
        "email": (profile.email if profile else None) or "",
        "avatar_url": (profile.avatar_url if profile else None) or "",
        "color": (profile.display_color if profile else None) or DEFAULT_COLOR,
        "phone": (profile.phone if profile else None) or "",
        "cpf": (profile.cpf if profile else None) or "",
    }


def get_team_members(studio_id):
    if not studio_id:
        return []
    try:
        members = db.session.scalars(
            select(StudioMember)
            .where(StudioMember.studio_id == studio_id)
            .order_by(StudioMember.id)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load team of studio {studio_id}: {e}")
        return []
    return [serialize_member(member) for member in members]


def invite_member(data, email_service=None):
    """
    Adds (or re-roles) a person on the studio team, creating the profile if
    needed. New profiles receive an invitation to set their password.
    """
    email = (data.get("email") or "").strip().lower()
    studio_id = data.get("studio_id")
    role = (data.get("role") or "ARTIST").upper()
    if not email or not studio_id:
        return {"success": False, "error": {"message": "E-mail e estúdio são obrigatórios."}}
    if role not in MEMBER_ROLES:
        return {"success": False, "error": {"message": f"Papel inválido: {role}"}}
    studio = db.session.get(Studio, studio_id)
    if not studio:
        return {"success": False, "error": {"message": "Estúdio não encontrado."}}

    try:
        profile, created = find_or_create_profile(
            email,
            data.get("full_name"),
            cpf=data.get("cpf"),
            phone=data.get("phone"),
            display_color=data.get("color") or DEFAULT_COLOR,
            avatar_url=data.get("avatar_url"),
        )
        member = db.session.scalar(
            select(StudioMember)
            .where(StudioMember.studio_id == studio_id)
            .where(StudioMember.profile_id == profile.id)
        )
        if member:
            member.role = role
        else:
            member = StudioMember(studio_id=studio_id, profile_id=profile.id, role=role)
            db.session.add(member)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to invite {email} to studio {studio_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}

    if created:
        email_service = email_service or EmailService()
        result = email_service.send_team_invitation(
            email, profile.full_name, studio.name, role, create_invite_token(profile)
        )
        if not result.get("success"):
            _log_error(f"Invitation e-mail to {email} failed: {result.get('error')}")

    message = "Convite enviado e perfil criado!" if created else "Usuário atualizado na equipe."
    return {"success": True, "message": message, "data": serialize_member(member)}


def update_member(member_id, updates):
    member = db.session.get(StudioMember, member_id)
    if not member:
        return {"success": False, "error": {"message": "Membro não encontrado."}}

    if updates.get("role"):
        role = updates["role"].upper()
        if role not in MEMBER_ROLES:
            return {"success": False, "error": {"message": f"Papel inválido: {role}"}}
        member.role = role
    if "commission_percentage" in updates:
        member.commission_percentage = updates["commission_percentage"]

    for key, column in PROFILE_UPDATES.items():
        if key in updates:
            setattr(member.profile, column, updates[key])

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to update team member {member_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_member(member)}


def remove_member(member_id):
    member = db.session.get(StudioMember, member_id)
    if not member:
        return {"success": False, "error": {"message": "Membro não encontrado."}}
    db.session.delete(member)
    db.session.commit()
    return {"success": True}
