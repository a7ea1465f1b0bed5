"""Appointment booking: studio-local scheduling, overlap checks and CRUD.

Appointments are stored as (scheduled_date, scheduled_time, duration_minutes).
Two non-cancelled appointments of the same professional on the same day must
not overlap; the check runs here, right before the write, and is not atomic
with it.
"""

import logging
from datetime import timedelta

from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Appointment
from ..utils.datetime_utils import (
    combine,
    duration_minutes,
    isoformat,
    local_date_string,
    local_now,
    parse_date,
    parse_datetime,
)
from .status_mapping import from_db_status, to_db_status

DEFAULT_DURATION_MINUTES = 60
CREATE_CONFLICT_MESSAGE = "Conflito de horário detectado para este profissional."
UPDATE_CONFLICT_MESSAGE = "Conflito de horário detectado."

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _failure(message):
    return {"success": False, "error": {"message": message}}


def appointment_window(appointment):
    """Half-open [start, end) of a stored appointment."""
    start = combine(appointment.scheduled_date, appointment.scheduled_time)
    return start, start + timedelta(minutes=appointment.duration_minutes or 0)


def intervals_overlap(start_a, end_a, start_b, end_b):
    return start_a < end_b and end_a > start_b


def serialize_appointment(appointment):
    start, end = appointment_window(appointment)
    client = appointment.client
    professional = appointment.professional
    return {
        "id": appointment.id,
        "studio_id": appointment.studio_id,
        "client_id": appointment.client_id,
        "client_name": client.full_name if client else None,
        "client_phone": client.phone if client else None,
        "professional_id": appointment.professional_id,
        "professional_name": professional.full_name if professional else None,
        "professional_color": professional.display_color if professional else None,
        "scheduled_date": appointment.scheduled_date.isoformat(),
        "scheduled_time": appointment.scheduled_time.strftime("%H:%M"),
        "duration_minutes": appointment.duration_minutes,
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
        "time": f"{start:%H:%M} - {end:%H:%M}",
        "status": from_db_status(appointment.status),
        "status_code": appointment.status,
        "notes": appointment.notes,
        "appointment_type": appointment.appointment_type,
        "price": float(appointment.price) if appointment.price is not None else None,
        "created_at": isoformat(appointment.created_at),
    }


def check_time_conflict(
    studio_id, professional_id, start_time, end_time, exclude_appointment_id=None
):
    """
    Returns {"conflict": bool}, or {"error": {...}} when the agenda could not be read.

    Only appointments on the studio-local calendar day of start_time are
    considered; cancelled ones never block a slot.
    """
    requested_start = parse_datetime(start_time)
    requested_end = parse_datetime(end_time)
    day = parse_date(local_date_string(requested_start))

    try:
        stmt = (
            select(Appointment)
            .where(Appointment.studio_id == studio_id)
            .where(Appointment.professional_id == professional_id)
            .where(Appointment.scheduled_date == day)
            .where(Appointment.status != "cancelled")
        )
        if exclude_appointment_id is not None:
            stmt = stmt.where(Appointment.id != exclude_appointment_id)
        candidates = db.session.scalars(stmt).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load agenda for professional {professional_id}: {e}")
        return {"error": {"message": str(e)}}

    for candidate in candidates:
        busy_start, busy_end = appointment_window(candidate)
        if intervals_overlap(requested_start, requested_end, busy_start, busy_end):
            return {"conflict": True, "appointment_id": candidate.id}
    return {"conflict": False}


def _resolve_duration(start, end):
    if end is None:
        return DEFAULT_DURATION_MINUTES
    minutes = duration_minutes(start, end)
    return minutes if minutes > 0 else DEFAULT_DURATION_MINUTES


def create_appointment(data):
    studio_id = data.get("studio_id")
    if not studio_id:
        return _failure("Estúdio é obrigatório.")
    try:
        start = parse_datetime(data.get("start_time"))
        end = parse_datetime(data.get("end_time"))
    except ValueError:
        return _failure("Data/hora inválida.")
    if start is None:
        return _failure("Horário de início é obrigatório.")

    duration = _resolve_duration(start, end)
    professional_id = data.get("professional_id")

    if professional_id:
        result = check_time_conflict(
            studio_id, professional_id, start, start + timedelta(minutes=duration)
        )
        if "error" in result:
            return {"success": False, "error": result["error"]}
        if result["conflict"]:
            return _failure(CREATE_CONFLICT_MESSAGE)

    appointment = Appointment(
        studio_id=studio_id,
        client_id=data.get("client_id"),
        professional_id=professional_id,
        scheduled_date=start.date(),
        scheduled_time=start.time(),
        duration_minutes=duration,
        status=to_db_status(data.get("status")) or "pending",
        notes=data.get("notes"),
        appointment_type=data.get("appointment_type"),
        price=data.get("price"),
    )
    try:
        db.session.add(appointment)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to create appointment: {e}")
        return _failure(str(e))
    return {"success": True, "data": serialize_appointment(appointment)}


def update_appointment(appointment_id, updates):
    """
    Applies a partial update. When the time or the professional changes, the
    new slot is checked against the rest of that professional's day.
    """
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return _failure("Agendamento não encontrado.")

    current_start, _ = appointment_window(appointment)
    try:
        new_start = parse_datetime(updates.get("start_time"))
        new_end = parse_datetime(updates.get("end_time"))
    except ValueError:
        return _failure("Data/hora inválida.")

    start = new_start or current_start
    if new_start is not None or new_end is not None:
        if new_end is not None:
            duration = _resolve_duration(start, new_end)
        else:
            duration = appointment.duration_minutes or DEFAULT_DURATION_MINUTES
    else:
        duration = appointment.duration_minutes

    professional_id = updates.get("professional_id") or appointment.professional_id
    studio_id = appointment.studio_id
    rescheduling = (
        new_start is not None
        or new_end is not None
        or updates.get("professional_id") is not None
    )

    if rescheduling and professional_id:
        result = check_time_conflict(
            studio_id,
            professional_id,
            start,
            start + timedelta(minutes=duration),
            exclude_appointment_id=appointment.id,
        )
        if "error" in result:
            return {"success": False, "error": result["error"]}
        if result["conflict"]:
            return _failure(UPDATE_CONFLICT_MESSAGE)

    if updates.get("client_id"):
        appointment.client_id = updates["client_id"]
    appointment.professional_id = professional_id
    appointment.scheduled_date = start.date()
    appointment.scheduled_time = start.time()
    appointment.duration_minutes = duration
    if updates.get("status"):
        appointment.status = to_db_status(updates["status"])
    if updates.get("notes") is not None:
        appointment.notes = updates["notes"]
    if "price" in updates:
        appointment.price = updates["price"]
    if updates.get("appointment_type"):
        appointment.appointment_type = updates["appointment_type"]

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to update appointment {appointment_id}: {e}")
        return _failure(str(e))
    return {"success": True, "data": serialize_appointment(appointment)}


def update_appointment_status(appointment_id, status):
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return _failure("Agendamento não encontrado.")
    appointment.status = to_db_status(status)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to update status of appointment {appointment_id}: {e}")
        return _failure(str(e))
    return {"success": True, "data": serialize_appointment(appointment)}


def delete_appointment(appointment_id):
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return _failure("Agendamento não encontrado.")
    try:
        db.session.delete(appointment)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to delete appointment {appointment_id}: {e}")
        return _failure(str(e))
    return {"success": True}


def get_by_date(day, studio_id):
    try:
        rows = db.session.scalars(
            select(Appointment)
            .where(Appointment.studio_id == studio_id)
            .where(Appointment.scheduled_date == parse_date(day))
            .order_by(Appointment.scheduled_time)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load appointments for {day}: {e}")
        return []
    return [serialize_appointment(row) for row in rows]


def get_appointments(studio_id, start_date=None, end_date=None, professional_id=None):
    stmt = select(Appointment).where(Appointment.studio_id == studio_id)
    if start_date:
        stmt = stmt.where(Appointment.scheduled_date >= parse_date(start_date))
    if end_date:
        stmt = stmt.where(Appointment.scheduled_date <= parse_date(end_date))
    if professional_id:
        stmt = stmt.where(Appointment.professional_id == professional_id)
    stmt = stmt.order_by(Appointment.scheduled_date, Appointment.scheduled_time)

    try:
        rows = db.session.scalars(stmt).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load appointments for studio {studio_id}: {e}")
        return []
    return [serialize_appointment(row) for row in rows]


def get_upcoming_appointments(studio_id, now=None, limit=3):
    """Next appointments from now on that are still open."""
    now = now or local_now()
    try:
        rows = db.session.scalars(
            select(Appointment)
            .where(Appointment.studio_id == studio_id)
            .where(Appointment.scheduled_date >= now.date())
            .where(Appointment.status.not_in(["cancelled", "completed"]))
            .order_by(Appointment.scheduled_date, Appointment.scheduled_time)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load upcoming appointments for studio {studio_id}: {e}")
        return []

    upcoming = [row for row in rows if appointment_window(row)[0] >= now]
    return [serialize_appointment(row) for row in upcoming[:limit]]
