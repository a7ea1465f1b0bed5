from decimal import Decimal

from sqlalchemy import func, select

from ..extensions import db
from ..models import Client, Session
from ..utils.datetime_utils import local_now

MONTH_NAMES = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]


def get_stats(studio_id, today=None):
    """
    Studio headline numbers.
    Revenue counts every session regardless of status; the monthly series
    covers the current year only.
    """
    today = today or local_now().date()

    total_clients = db.session.scalar(
        select(func.count(Client.id)).where(Client.studio_id == studio_id)
    )
    sessions = db.session.scalars(select(Session).where(Session.studio_id == studio_id)).all()

    total_revenue = Decimal("0")
    monthly = [Decimal("0")] * 12
    for session in sessions:
        price = Decimal(session.price or 0)
        total_revenue += price
        when = session.performed_date or session.created_at
        if when and when.year == today.year:
            monthly[when.month - 1] += price

    return {
        "total_clients": total_clients or 0,
        "total_appointments": len(sessions),
        "total_revenue": float(total_revenue),
        "revenue_by_month": [
            {"name": name, "value": float(monthly[index])}
            for index, name in enumerate(MONTH_NAMES)
        ],
    }
