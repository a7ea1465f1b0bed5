"""Marketing campaigns: audience segmentation, campaign records and WhatsApp sends."""

import logging
import random
import time

from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, MarketingCampaign, Session, Studio
from ..utils.datetime_utils import isoformat, local_now
from .sessions import OPEN_STATUSES

AUDIENCES = ("all", "birthday", "winback", "return")
CAMPAIGN_TYPES = ("birthday", "winback", "return", "custom")
CAMPAIGN_STATUSES = ("draft", "scheduled", "sent")
CHANNELS = ("whatsapp", "email")
WINBACK_DAYS = 90
NAME_PLACEHOLDER = "{{name}}"

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _last_session_dates(sessions):
    last = {}
    for session in sessions:
        visited = session.performed_date or session.created_at
        if visited is None:
            continue
        day = visited.date()
        if session.client_id not in last or day > last[session.client_id]:
            last[session.client_id] = day
    return last


def is_birthday_month(client, month):
    return client.birth_date is not None and client.birth_date.month == month


def is_birthday_today(client, today):
    return (
        client.birth_date is not None
        and client.birth_date.month == today.month
        and client.birth_date.day == today.day
    )


def segment_audience(clients, sessions, audience="all", filters=None, today=None):
    """
    Filters already-loaded client rows into a campaign audience.

    `filters` may carry `month` (birthday audience), `professional_id` and a
    free-text `search` over name and phone. Clients without a phone number
    cannot receive messages and are always left out.
    """
    filters = filters or {}
    today = today or local_now().date()
    last_visits = _last_session_dates(sessions)
    open_clients = {s.client_id for s in sessions if s.status in OPEN_STATUSES}

    selected = [client for client in clients if client.phone]

    if audience == "birthday":
        month = int(filters.get("month") or today.month)
        selected = [c for c in selected if is_birthday_month(c, month)]
    elif audience == "winback":
        selected = [
            c
            for c in selected
            if c.id in last_visits and (today - last_visits[c.id]).days > WINBACK_DAYS
        ]
    elif audience == "return":
        selected = [c for c in selected if c.id in open_clients]

    professional_id = filters.get("professional_id")
    if professional_id:
        served = {
            s.client_id for s in sessions if str(s.professional_id) == str(professional_id)
        }
        selected = [c for c in selected if c.id in served]

    search = (filters.get("search") or "").strip().lower()
    if search:
        selected = [
            c
            for c in selected
            if search in (c.full_name or "").lower() or search in (c.phone or "")
        ]
    return selected


def _load_studio_rows(studio_id):
    clients = db.session.scalars(
        select(Client).where(Client.studio_id == studio_id).order_by(Client.full_name)
    ).all()
    sessions = db.session.scalars(
        select(Session).where(Session.studio_id == studio_id)
    ).all()
    return clients, sessions


def get_audience(studio_id, audience="all", filters=None, today=None):
    try:
        clients, sessions = _load_studio_rows(studio_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load audience for studio {studio_id}: {e}")
        return []
    selected = segment_audience(clients, sessions, audience, filters, today)
    return [
        {"id": c.id, "name": c.full_name, "phone": c.phone, "birth_date": isoformat(c.birth_date)}
        for c in selected
    ]


def get_marketing_metrics(studio_id, today=None):
    today = today or local_now().date()
    try:
        clients, sessions = _load_studio_rows(studio_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load marketing metrics for studio {studio_id}: {e}")
        return {"birthday_count": 0, "winback_count": 0, "return_count": 0}

    return {
        "birthday_count": sum(1 for c in clients if is_birthday_today(c, today)),
        "winback_count": len(segment_audience(clients, sessions, "winback", today=today)),
        "return_count": len(segment_audience(clients, sessions, "return", today=today)),
    }


def serialize_campaign(campaign):
    return {
        "id": campaign.id,
        "studio_id": campaign.studio_id,
        "name": campaign.name,
        "type": campaign.type,
        "status": campaign.status,
        "audience_count": campaign.audience_count,
        "channel": campaign.channel,
        "message_template": campaign.message_template,
        "sent_count": campaign.sent_count,
        "failed_count": campaign.failed_count,
        "created_at": isoformat(campaign.created_at),
    }


def get_campaigns(studio_id):
    if not studio_id:
        return []
    try:
        campaigns = db.session.scalars(
            select(MarketingCampaign)
            .where(MarketingCampaign.studio_id == studio_id)
            .order_by(MarketingCampaign.created_at.desc(), MarketingCampaign.id.desc())
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to load campaigns for studio {studio_id}: {e}")
        return []
    return [serialize_campaign(c) for c in campaigns]


def create_campaign(data):
    if not data.get("studio_id") or not data.get("name"):
        return {"success": False, "error": {"message": "Estúdio e nome são obrigatórios."}}
    if data.get("type") not in CAMPAIGN_TYPES:
        return {"success": False, "error": {"message": "Tipo de campanha inválido."}}
    status = data.get("status") or "draft"
    channel = data.get("channel") or "whatsapp"
    if status not in CAMPAIGN_STATUSES or channel not in CHANNELS:
        return {"success": False, "error": {"message": "Status ou canal inválido."}}

    campaign = MarketingCampaign(
        studio_id=data["studio_id"],
        name=data["name"],
        type=data["type"],
        status=status,
        channel=channel,
        audience_count=int(data.get("audience_count") or 0),
        message_template=data.get("message_template"),
    )
    try:
        db.session.add(campaign)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to create campaign: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": serialize_campaign(campaign)}


def render_message(template, name):
    first_name = (name or "").split(" ")[0]
    return (template or "").replace(NAME_PLACEHOLDER, first_name)


def send_mass_message(
    studio,
    recipients,
    template,
    gateway,
    sleep=time.sleep,
    on_progress=None,
    min_delay=15.0,
    max_delay=45.0,
):
    """
    Sends the template to each recipient, one at a time.

    A random pause is taken after every send except the last one. The loop
    cannot be cancelled once started.
    """
    if not studio.whatsapp_instance_name or not studio.whatsapp_token:
        return {
            "success": False,
            "error": {"message": "WhatsApp not configured for this studio"},
        }

    total = len(recipients)
    sent = 0
    failed = 0
    for index, recipient in enumerate(recipients, start=1):
        message = render_message(template, recipient.get("name"))
        result = gateway.send_text(
            studio.whatsapp_instance_name,
            studio.whatsapp_token,
            recipient.get("phone"),
            message,
        )
        if result.get("success"):
            sent += 1
        else:
            failed += 1
            logger.warning(f"Campaign message to recipient {index}/{total} failed")
        if on_progress:
            on_progress(index, total)
        if index < total:
            sleep(random.uniform(min_delay, max_delay))

    return {"success": True, "sent_count": sent, "failed_count": failed}


def run_campaign(campaign_id, recipients, gateway, sleep=time.sleep):
    """Sends a stored campaign and records the outcome. Needs an app context."""
    campaign = db.session.get(MarketingCampaign, campaign_id)
    if not campaign:
        _log_error(f"Campaign {campaign_id} not found")
        return {"success": False, "error": {"message": "Campanha não encontrada."}}

    studio = db.session.get(Studio, campaign.studio_id)
    result = send_mass_message(
        studio,
        recipients,
        campaign.message_template,
        gateway,
        sleep=sleep,
        min_delay=current_app.config.get("CAMPAIGN_MIN_DELAY_SECONDS", 15.0),
        max_delay=current_app.config.get("CAMPAIGN_MAX_DELAY_SECONDS", 45.0),
    )
    if not result["success"]:
        return result

    campaign.status = "sent"
    campaign.audience_count = len(recipients)
    campaign.sent_count = result["sent_count"]
    campaign.failed_count = result["failed_count"]
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to record results of campaign {campaign_id}: {e}")
    return result
