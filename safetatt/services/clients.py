import logging
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, ClientNote, Session
from ..utils.datetime_utils import isoformat, parse_date

MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 10
PROFILE_FIELDS = (
    "email",
    "phone",
    "cpf",
    "rg_passport",
    "profession",
    "social_media",
    "cep",
    "neighborhood",
    "city",
    "state",
    "avatar_url",
)

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def serialize_client(client, metrics=None):
    address = client.address or {}
    data = {
        "id": client.id,
        "studio_id": client.studio_id,
        "name": client.full_name,
        "first_name": client.first_name,
        "last_name": client.last_name,
        "birth_date": isoformat(client.birth_date),
        "street": address.get("street"),
        "number": address.get("number"),
        "zip_code": client.cep or address.get("zip_code"),
        "address": address.get("full_address") or "",
        "created_at": isoformat(client.created_at),
    }
    for field in PROFILE_FIELDS:
        data[field] = getattr(client, field) or ""
    if metrics is not None:
        data.update(metrics)
    return data


def _aggregate_sessions(sessions):
    """Visits, spend (any status) and last visit per client."""
    metrics = {}
    for session in sessions:
        if not session.client_id:
            continue
        entry = metrics.setdefault(
            session.client_id,
            {"total_visits": 0, "total_spent": Decimal("0"), "last_visit": None},
        )
        entry["total_visits"] += 1
        entry["total_spent"] += Decimal(session.price or 0)
        visited = session.performed_date or session.created_at
        if visited and (entry["last_visit"] is None or visited > entry["last_visit"]):
            entry["last_visit"] = visited
    return metrics


def get_clients(studio_id):
    try:
        clients = db.session.scalars(
            select(Client)
            .where(Client.studio_id == studio_id)
            .order_by(Client.created_at.desc(), Client.id.desc())
        ).all()
        sessions = db.session.scalars(
            select(Session).where(Session.studio_id == studio_id)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error fetching clients for studio {studio_id}: {e}")
        return []

    metrics = _aggregate_sessions(sessions)
    result = []
    for client in clients:
        entry = metrics.get(client.id)
        result.append(
            serialize_client(
                client,
                {
                    "total_visits": entry["total_visits"] if entry else 0,
                    "total_spent": float(entry["total_spent"]) if entry else 0.0,
                    "last_visit": isoformat(entry["last_visit"]) if entry else None,
                },
            )
        )
    return result


def create_client(data):
    if not data.get("studio_id"):
        return {"success": False, "error": {"message": "Estúdio é obrigatório."}}
    first_name = (data.get("first_name") or "").strip()
    last_name = (data.get("last_name") or "").strip()
    full_name = (data.get("full_name") or f"{first_name} {last_name}").strip()
    if not full_name:
        return {"success": False, "error": {"message": "Nome é obrigatório."}}

    client = Client(
        studio_id=data["studio_id"],
        first_name=first_name or None,
        last_name=last_name or None,
        full_name=full_name,
        birth_date=parse_date(data.get("birth_date")),
        address={
            "street": data.get("street"),
            "number": data.get("number"),
            "zip_code": data.get("cep"),
            "full_address": data.get("address"),
        },
    )
    for field in PROFILE_FIELDS:
        if data.get(field):
            setattr(client, field, data[field])

    try:
        db.session.add(client)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error creating client: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_client(client)}


def get_client_by_id(client_id):
    client = db.session.get(Client, client_id)
    return serialize_client(client) if client else None


def search_clients(query, studio_id):
    if not query or len(query) < MIN_SEARCH_LENGTH:
        return []
    pattern = f"%{query}%"
    try:
        clients = db.session.scalars(
            select(Client)
            .where(Client.studio_id == studio_id)
            .where(
                or_(
                    Client.full_name.ilike(pattern),
                    Client.email.ilike(pattern),
                    Client.cpf.ilike(pattern),
                )
            )
            .order_by(Client.full_name)
            .limit(SEARCH_LIMIT)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error searching clients: {e}")
        return []
    return [serialize_client(client) for client in clients]


def update_client(client_id, data):
    client = db.session.get(Client, client_id)
    if not client:
        return {"success": False, "error": {"message": "Cliente não encontrado."}}

    if data.get("full_name"):
        client.full_name = data["full_name"].strip()
    for field in ("first_name", "last_name"):
        if field in data:
            setattr(client, field, data[field])
    if "birth_date" in data:
        client.birth_date = parse_date(data["birth_date"])
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(client, field, data[field])

    address = dict(client.address or {})
    for key in ("street", "number"):
        if key in data:
            address[key] = data[key]
    if "address" in data:
        address["full_address"] = data["address"]
    if "cep" in data:
        address["zip_code"] = data["cep"]
    client.address = address

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error updating client {client_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_client(client)}


def serialize_note(note):
    return {
        "id": note.id,
        "client_id": note.client_id,
        "content": note.content,
        "type": note.type,
        "author_name": note.author_name,
        "created_at": isoformat(note.created_at),
        "updated_at": isoformat(note.updated_at),
    }


def get_notes(client_id):
    notes = db.session.scalars(
        select(ClientNote)
        .where(ClientNote.client_id == client_id)
        .order_by(ClientNote.created_at.desc(), ClientNote.id.desc())
    ).all()
    return [serialize_note(note) for note in notes]


def add_note(client_id, content, note_type="general", author_name=None):
    if not content:
        return {"success": False, "error": {"message": "Conteúdo da nota é obrigatório."}}
    note = ClientNote(
        client_id=client_id, content=content, type=note_type, author_name=author_name
    )
    try:
        db.session.add(note)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Error adding note to client {client_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_note(note)}


def update_note(note_id, content):
    note = db.session.get(ClientNote, note_id)
    if not note:
        return {"success": False, "error": {"message": "Nota não encontrada."}}
    note.content = content
    db.session.commit()
    return {"success": True, "data": serialize_note(note)}


def delete_note(note_id):
    note = db.session.get(ClientNote, note_id)
    if not note:
        return {"success": False, "error": {"message": "Nota não encontrada."}}
    db.session.delete(note)
    db.session.commit()
    return {"success": True}
