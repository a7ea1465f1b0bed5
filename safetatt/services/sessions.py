import logging
import os
import uuid
from decimal import Decimal, InvalidOperation

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, Session
from ..utils.datetime_utils import isoformat, local_now, parse_datetime
from ..utils.s3_utils import StorageError, upload_file_to_s3
from .status_mapping import session_status_label

SERVICE_TYPES = ("tattoo", "piercing")
OPEN_STATUSES = ("draft", "pending", "in_progress")
# Sessions that count as revenue for a client
SETTLED_STATUSES = ("completed",)
EDITABLE_FIELDS = (
    "professional_id",
    "status",
    "title",
    "description",
    "service_type",
    "body_location",
    "size",
    "art_color",
    "price",
    "payment_status",
    "photos_url",
    "consent_signature_url",
    "session_number",
    "performed_date",
)

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _parse_price(value):
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid price: {value!r}")


def serialize_session(session):
    client = session.client
    professional = session.professional
    return {
        "id": session.id,
        "studio_id": session.studio_id,
        "client_id": session.client_id,
        "client_name": client.full_name if client else "Cliente Desconhecido",
        "client_avatar": (client.avatar_url if client else None) or "",
        "client_phone": (client.phone if client else None) or "",
        "professional_id": session.professional_id,
        "artist_name": professional.full_name if professional else "Profissional",
        "artist_color": professional.display_color if professional else None,
        "appointment_id": session.appointment_id,
        "status": session.status,
        "title": session.title,
        "description": session.description,
        "service_type": session.service_type,
        "body_location": session.body_location,
        "size": session.size,
        "art_color": session.art_color,
        "price": float(session.price or 0),
        "payment_status": session.payment_status,
        "photos_url": session.photos_url or [],
        "consent_signature_url": session.consent_signature_url,
        "session_number": session.session_number,
        "performed_date": isoformat(session.performed_date),
        "created_at": isoformat(session.created_at),
    }


def get_sessions(
    studio_id,
    page=1,
    limit=20,
    search=None,
    status=None,
    order_by="performed_date",
    order_direction="desc",
    professional_id=None,
):
    """Paginated session list; `search` matches the client name."""
    stmt = select(Session).where(Session.studio_id == studio_id)
    count_stmt = select(func.count(Session.id)).where(Session.studio_id == studio_id)

    if search:
        stmt = stmt.join(Client, Session.client_id == Client.id).where(
            Client.full_name.ilike(f"%{search}%")
        )
        count_stmt = count_stmt.join(Client, Session.client_id == Client.id).where(
            Client.full_name.ilike(f"%{search}%")
        )
    if status:
        stmt = stmt.where(Session.status == status)
        count_stmt = count_stmt.where(Session.status == status)
    if professional_id:
        stmt = stmt.where(Session.professional_id == professional_id)
        count_stmt = count_stmt.where(Session.professional_id == professional_id)

    column = Session.created_at if order_by == "created_at" else Session.performed_date
    stmt = stmt.order_by(column.asc() if order_direction == "asc" else column.desc())
    stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = db.session.scalars(stmt).all()
    count = db.session.scalar(count_stmt) or 0
    return {"data": [serialize_session(row) for row in rows], "count": count}


def get_session_by_id(session_id):
    session = db.session.get(Session, session_id)
    return serialize_session(session) if session else None


def create_session(data):
    if not data.get("studio_id") or not data.get("client_id"):
        return {"success": False, "error": {"message": "Estúdio e cliente são obrigatórios."}}
    try:
        price = _parse_price(data.get("price"))
    except ValueError as e:
        return {"success": False, "error": {"message": str(e)}}

    service_type = data.get("service_type")
    session = Session(
        studio_id=data["studio_id"],
        client_id=data["client_id"],
        professional_id=data.get("professional_id"),
        appointment_id=data.get("appointment_id"),
        status="draft",
        title=data.get("title") or service_type,
        description=data.get("description") or data.get("observations"),
        service_type=service_type if service_type in SERVICE_TYPES else "tattoo",
        body_location=data.get("body_location"),
        size=data.get("size"),
        art_color=data.get("art_color"),
        price=price,
        photos_url=data.get("photos") or data.get("photos_url") or [],
        consent_signature_url=data.get("consent_signature_url"),
        session_number=data.get("session_number") or 1,
        performed_date=local_now(),
    )
    try:
        db.session.add(session)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error creating session: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_session(session)}


def update_session(session_id, updates):
    session = db.session.get(Session, session_id)
    if not session:
        return {"success": False, "error": {"message": "Sessão não encontrada."}}

    for field in EDITABLE_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field == "price":
            try:
                value = _parse_price(value)
            except ValueError as e:
                return {"success": False, "error": {"message": str(e)}}
        elif field == "performed_date":
            value = parse_datetime(value)
        setattr(session, field, value)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error updating session {session_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_session(session)}


def get_sessions_by_client(client_id, page=1, limit=20):
    stmt = (
        select(Session)
        .where(Session.client_id == client_id)
        .order_by(Session.performed_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = db.session.scalars(stmt).all()
    count = db.session.scalar(
        select(func.count(Session.id)).where(Session.client_id == client_id)
    )

    data = []
    for row in rows:
        item = serialize_session(row)
        item["status_label"] = session_status_label(row.status)
        data.append(item)
    return {"data": data, "count": count or 0}


def get_client_metrics(client_id):
    """Spend totals over the client's completed or paid sessions."""
    rows = db.session.scalars(select(Session).where(Session.client_id == client_id)).all()
    settled = [
        row
        for row in rows
        if row.status in SETTLED_STATUSES or row.payment_status == "paid"
    ]
    total = sum((Decimal(row.price or 0) for row in settled), Decimal("0"))
    count = len(settled)
    return {
        "total": float(total),
        "count": count,
        "average": float(total / count) if count else 0.0,
    }


def attach_consent_signature(session_id, file):
    """Uploads the signature image to S3 and stores its public URL on the session."""
    session = db.session.get(Session, session_id)
    if not session:
        return {"success": False, "error": {"message": "Sessão não encontrada."}}

    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        return {"success": False, "error": {"message": "S3 bucket not configured"}}

    extension = os.path.splitext(file.filename or "")[1] or ".png"
    filename = f"consents/{session.studio_id}/{session.id}_{uuid.uuid4().hex}{extension}"
    try:
        url = upload_file_to_s3(file, filename, bucket_name)
    except StorageError as e:
        _log_error(f"Consent upload failed for session {session_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}

    session.consent_signature_url = url
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error saving consent signature for session {session_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": {"consent_signature_url": url}}
