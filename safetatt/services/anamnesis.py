from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from flask import current_app

from ..extensions import db
from ..models import AnamnesisRecord
from ..utils.datetime_utils import isoformat


def serialize_record(record):
    return {
        "id": record.id,
        "appointment_id": record.appointment_id,
        "studio_id": record.studio_id,
        "answers": record.answers or {},
        "observations": record.observations or "",
        "created_at": isoformat(record.created_at),
        "updated_at": isoformat(record.updated_at),
    }


def _find(appointment_id):
    return db.session.scalar(
        select(AnamnesisRecord).where(AnamnesisRecord.appointment_id == appointment_id)
    )


def get_record(appointment_id):
    """None when the client has not answered yet."""
    record = _find(appointment_id)
    return serialize_record(record) if record else None


def save_answers(appointment_id, answers, observations="", studio_id=None):
    """One record per appointment; a second save overwrites the first."""
    if not studio_id:
        return {"success": False, "error": {"message": "Studio ID is required"}}
    if not isinstance(answers, dict):
        return {"success": False, "error": {"message": "Answers must be an object"}}

    record = _find(appointment_id)
    if record is None:
        record = AnamnesisRecord(appointment_id=appointment_id)
        db.session.add(record)
    record.answers = {str(k): bool(v) for k, v in answers.items()}
    record.observations = observations or ""
    record.studio_id = studio_id

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(
            f"Failed to save anamnesis for appointment {appointment_id}: {e}"
        )
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_record(record)}
