import logging
import os
import re
import unicodedata
import uuid

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Profile, Studio, StudioMember
from ..utils.datetime_utils import isoformat
from ..utils.auth import create_invite_token
from ..utils.s3_utils import StorageError, delete_file_from_s3, upload_file_to_s3
from .email_service import EmailService

SETTINGS_FIELDS = ("name", "slug", "contact_email", "phone", "address", "logo_url", "is_active")
PLACEHOLDER_LOGO = "https://via.placeholder.com/150"

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def serialize_studio(studio, include_credentials=False):
    data = {
        "id": studio.id,
        "name": studio.name,
        "slug": studio.slug,
        "contact_email": studio.contact_email,
        "phone": studio.phone,
        "address": studio.address,
        "logo_url": studio.logo_url,
        "is_active": bool(studio.is_active),
        "whatsapp_instance_name": studio.whatsapp_instance_name,
        "whatsapp_status": studio.whatsapp_status,
        "created_at": isoformat(studio.created_at),
    }
    if include_credentials:
        data["whatsapp_instance_id"] = studio.whatsapp_instance_id
    return data


def generate_slug(name):
    """'Estúdio Tinta Viva' -> 'estudio-tinta-viva'"""
    normalized = unicodedata.normalize("NFD", name or "")
    ascii_name = normalized.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")


def check_slug_availability(slug, studio_id=None):
    """False when taken, and also when the lookup itself fails."""
    try:
        stmt = select(Studio.id).where(Studio.slug == slug)
        if studio_id:
            stmt = stmt.where(Studio.id != studio_id)
        taken = db.session.scalars(stmt).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Slug lookup failed for {slug}: {e}")
        return False
    return taken is None


def get_studio_settings(studio_id):
    studio = db.session.get(Studio, studio_id)
    return serialize_studio(studio) if studio else None


def update_studio_settings(studio_id, updates):
    studio = db.session.get(Studio, studio_id)
    if not studio:
        return {"success": False, "error": {"message": "Estúdio não encontrado."}}

    if updates.get("slug") and updates["slug"] != studio.slug:
        if not check_slug_availability(updates["slug"], studio_id):
            return {"success": False, "error": {"message": "Slug indisponível."}, "conflict": True}

    for field in SETTINGS_FIELDS:
        if field in updates:
            setattr(studio, field, updates[field])
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to update studio {studio_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_studio(studio)}


def get_user_studios(profile_id):
    try:
        memberships = db.session.scalars(
            select(StudioMember).where(StudioMember.profile_id == profile_id)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load studios of profile {profile_id}: {e}")
        return []

    return [
        {
            "id": m.studio.id,
            "name": m.studio.name,
            "role": m.role,
            "logo": m.studio.logo_url or PLACEHOLDER_LOGO,
            "member_count": len(m.studio.members),
        }
        for m in memberships
        if m.studio is not None
    ]


def upload_studio_logo(studio_id, file):
    studio = db.session.get(Studio, studio_id)
    if not studio:
        return {"success": False, "error": {"message": "Estúdio não encontrado."}}
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        return {"success": False, "error": {"message": "S3 bucket not configured"}}

    extension = os.path.splitext(file.filename or "")[1] or ".png"
    filename = f"logos/{studio.id}/{uuid.uuid4().hex}{extension}"
    try:
        url = upload_file_to_s3(file, filename, bucket_name)
    except StorageError as e:
        _log_error(f"Logo upload failed for studio {studio_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}

    previous = studio.logo_url
    studio.logo_url = url
    db.session.commit()
    if previous:
        delete_file_from_s3(previous, bucket_name)
    return {"success": True, "data": {"logo_url": url}}


def list_studios():
    """Platform admin view: every studio with its member count."""
    rows = db.session.execute(
        select(Studio, func.count(StudioMember.id))
        .outerjoin(StudioMember, StudioMember.studio_id == Studio.id)
        .group_by(Studio.id)
        .order_by(Studio.created_at.desc(), Studio.id.desc())
    ).all()
    result = []
    for studio, member_count in rows:
        data = serialize_studio(studio)
        data["member_count"] = member_count
        result.append(data)
    return result


def find_or_create_profile(email, full_name=None, **profile_fields):
    """Returns (profile, created)."""
    profile = db.session.scalar(select(Profile).where(Profile.email == email))
    if profile:
        return profile, False
    profile = Profile(email=email, full_name=full_name, **profile_fields)
    db.session.add(profile)
    db.session.flush()
    return profile, True


def provision_studio(data, email_service=None):
    """
    Creates a studio and makes `owner_email` its MASTER.
    Unknown owners get a profile without password and an invitation.
    """
    name = (data.get("name") or "").strip()
    owner_email = (data.get("owner_email") or "").strip().lower()
    if not name or not owner_email:
        return {"success": False, "error": {"message": "Nome e e-mail do responsável são obrigatórios."}}

    slug = data.get("slug") or generate_slug(name)
    if not check_slug_availability(slug):
        return {"success": False, "error": {"message": "Slug indisponível."}, "conflict": True}

    try:
        studio = Studio(
            name=name,
            slug=slug,
            contact_email=data.get("contact_email") or owner_email,
            phone=data.get("phone"),
            address=data.get("address"),
        )
        db.session.add(studio)
        profile, created = find_or_create_profile(owner_email, data.get("owner_name"))
        db.session.flush()
        db.session.add(StudioMember(studio_id=studio.id, profile_id=profile.id, role="MASTER"))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to provision studio {name}: {e}")
        return {"success": False, "error": {"message": str(e)}}

    email_service = email_service or EmailService()
    if created:
        email_result = email_service.send_team_invitation(
            owner_email, profile.full_name, studio.name, "MASTER", create_invite_token(profile)
        )
    else:
        email_result = email_service.send_studio_welcome(owner_email, studio.name, studio.slug)
    if not email_result.get("success"):
        current_app.logger.warning(
            f"Studio {studio.id} created but owner e-mail failed: {email_result.get('error')}"
        )

    data = serialize_studio(studio)
    data["owner_profile_id"] = profile.id
    data["owner_created"] = created
    return {"success": True, "data": data}
