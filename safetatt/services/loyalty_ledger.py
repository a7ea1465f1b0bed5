"""Cashback ledger.

Balances are never stored. They are folded on every read from the
append-only loyalty_transactions rows:

    balance = max(0, sum(valid CREDIT + MANUAL_ADJUST) - sum(DEBIT))

A CREDIT stops counting once its expires_at is in the past; the row stays in
the history. MANUAL_ADJUST rows never expire.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, LoyaltySettings, LoyaltyTransaction, Session
from ..utils.datetime_utils import isoformat, local_now, month_start, parse_datetime

TRANSACTION_TYPES = ("CREDIT", "DEBIT", "EXPIRED", "MANUAL_ADJUST")
# Only these may carry expires_at
EXPIRING_TYPES = ("CREDIT", "MANUAL_ADJUST")
EXPIRING_SOON_DAYS = 30
UNKNOWN_CLIENT_NAME = "Cliente Desconhecido"
ZERO = Decimal("0")
CENT = Decimal("0.01")

DEFAULT_SETTINGS = {
    "is_active": True,
    "reward_type": "PERCENTAGE",
    "reward_value": 10.0,
    "min_spent_to_use": 100.0,
    "validity_days": 90,
    "max_usage_limit": 100.0,
}

logger = logging.getLogger(__name__)


def _log_error(message):
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def is_expired(tx, now) -> bool:
    return tx.expires_at is not None and tx.expires_at < now


def signed_contribution(tx, now) -> Decimal:
    """What a single transaction adds to the spendable balance at `now`."""
    amount = Decimal(tx.amount)
    if tx.type == "MANUAL_ADJUST":
        return amount
    if tx.type == "CREDIT":
        return ZERO if is_expired(tx, now) else amount
    if tx.type == "DEBIT":
        return -amount
    return ZERO


def fold_balance(transactions, now) -> Decimal:
    total = sum((signed_contribution(tx, now) for tx in transactions), ZERO)
    return max(ZERO, total)


def next_expiration(transactions, now):
    upcoming = [
        tx.expires_at
        for tx in transactions
        if tx.type == "CREDIT" and tx.expires_at is not None and tx.expires_at > now
    ]
    return min(upcoming) if upcoming else None


def serialize_transaction(tx):
    return {
        "id": tx.id,
        "studio_id": tx.studio_id,
        "client_id": tx.client_id,
        "appointment_id": tx.appointment_id,
        "type": tx.type,
        "direction": "EARN" if tx.type in ("CREDIT", "MANUAL_ADJUST") else "USE",
        "amount": float(tx.amount),
        "description": tx.description,
        "expires_at": isoformat(tx.expires_at),
        "created_at": isoformat(tx.created_at),
    }


def get_client_balance(client_id, now=None):
    """Returns {"balance", "next_expiration"}; zero/None when the ledger cannot be read."""
    now = now or local_now()
    try:
        transactions = db.session.scalars(
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.client_id == client_id)
            .order_by(LoyaltyTransaction.created_at.asc(), LoyaltyTransaction.id.asc())
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read loyalty balance for client {client_id}: {e}")
        return {"balance": 0.0, "next_expiration": None}

    return {
        "balance": float(fold_balance(transactions, now)),
        "next_expiration": next_expiration(transactions, now),
    }


def create_transaction(tx, created_at=None):
    """Appends one ledger row. Returns the stored row or None.

    The row is timestamped by the server. `created_at` exists for seeding
    historical rows; a `created_at` key inside `tx` is ignored.
    """
    tx_type = tx.get("type")
    if tx_type not in TRANSACTION_TYPES:
        _log_error(f"Rejected loyalty transaction with type {tx_type!r}")
        return None
    try:
        amount = _money(tx.get("amount"))
    except (InvalidOperation, TypeError, ValueError):
        _log_error(f"Rejected loyalty transaction with amount {tx.get('amount')!r}")
        return None
    if amount <= 0:
        _log_error(f"Rejected loyalty transaction with amount {amount}")
        return None

    try:
        expires_at = parse_datetime(tx.get("expires_at"))
    except ValueError:
        _log_error(f"Rejected loyalty transaction with expires_at {tx.get('expires_at')!r}")
        return None
    if expires_at is not None and tx_type not in EXPIRING_TYPES:
        _log_error(f"Rejected {tx_type} loyalty transaction carrying an expiry date")
        return None
    try:
        created_at = parse_datetime(created_at)
    except ValueError:
        _log_error(f"Rejected loyalty transaction with created_at {created_at!r}")
        return None

    record = LoyaltyTransaction(
        studio_id=tx.get("studio_id"),
        client_id=tx.get("client_id"),
        appointment_id=tx.get("appointment_id"),
        type=tx_type,
        amount=amount,
        description=tx.get("description"),
        expires_at=expires_at,
    )
    if created_at is not None:
        record.created_at = created_at
    try:
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to create loyalty transaction: {e}")
        return None
    return record


def get_dashboard_metrics(studio_id, now=None):
    now = now or local_now()
    empty = {"total_liability": 0.0, "redeemed_month": 0.0, "expiring_soon": 0.0}
    try:
        transactions = db.session.scalars(
            select(LoyaltyTransaction).where(LoyaltyTransaction.studio_id == studio_id)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read loyalty metrics for studio {studio_id}: {e}")
        return empty

    first_of_month = month_start(now)
    soon = now + timedelta(days=EXPIRING_SOON_DAYS)

    redeemed = ZERO
    expiring = ZERO
    for tx in transactions:
        if tx.type == "DEBIT" and tx.created_at >= first_of_month:
            redeemed += Decimal(tx.amount)
        if tx.type == "CREDIT" and tx.expires_at and now < tx.expires_at <= soon:
            expiring += Decimal(tx.amount)

    return {
        "total_liability": float(fold_balance(transactions, now)),
        "redeemed_month": float(redeemed),
        "expiring_soon": float(expiring),
    }


def get_client_history(client_id):
    try:
        transactions = db.session.scalars(
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.client_id == client_id)
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read loyalty history for client {client_id}: {e}")
        return []
    return [serialize_transaction(tx) for tx in transactions]


def get_clients_with_loyalty(studio_id, now=None):
    """One summary row per client that has ledger activity in the studio."""
    now = now or local_now()
    try:
        transactions = db.session.scalars(
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.studio_id == studio_id)
            .order_by(LoyaltyTransaction.created_at.asc(), LoyaltyTransaction.id.asc())
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read loyalty clients for studio {studio_id}: {e}")
        return []

    by_client = {}
    for tx in transactions:
        by_client.setdefault(tx.client_id, []).append(tx)
    if not by_client:
        return []

    try:
        clients = db.session.scalars(
            select(Client).where(Client.id.in_(list(by_client)))
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read clients for loyalty summary: {e}")
        clients = []
    clients_by_id = {client.id: client for client in clients}

    summaries = []
    for client_id, client_transactions in by_client.items():
        client = clients_by_id.get(client_id)
        accumulated = sum(
            (
                Decimal(tx.amount)
                for tx in client_transactions
                if tx.type in ("CREDIT", "MANUAL_ADJUST")
            ),
            ZERO,
        )
        summaries.append(
            {
                "id": client_id,
                "name": client.full_name if client else UNKNOWN_CLIENT_NAME,
                "phone": client.phone if client else None,
                "avatar": client.avatar_url if client else None,
                "balance": float(fold_balance(client_transactions, now)),
                "total_accumulated": float(accumulated),
                "last_visit": isoformat(max(tx.created_at for tx in client_transactions)),
                "next_expiration": isoformat(next_expiration(client_transactions, now)),
            }
        )
    return summaries


def _settings_to_dict(settings):
    return {
        "is_active": bool(settings.is_active),
        "reward_type": settings.reward_type,
        "reward_value": float(settings.reward_value),
        "min_spent_to_use": float(settings.min_spent_to_use),
        "validity_days": settings.validity_days,
        "max_usage_limit": float(settings.max_usage_limit),
    }


def get_settings(studio_id):
    try:
        settings = db.session.scalar(
            select(LoyaltySettings).where(LoyaltySettings.studio_id == studio_id)
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to read loyalty settings for studio {studio_id}: {e}")
        settings = None
    if settings is None:
        return dict(DEFAULT_SETTINGS)
    return _settings_to_dict(settings)


def upsert_settings(studio_id, values):
    settings = db.session.scalar(
        select(LoyaltySettings).where(LoyaltySettings.studio_id == studio_id)
    )
    if settings is None:
        settings = LoyaltySettings(studio_id=studio_id, **DEFAULT_SETTINGS)
        db.session.add(settings)

    for field in DEFAULT_SETTINGS:
        if field in values and values[field] is not None:
            setattr(settings, field, values[field])

    if settings.reward_type not in ("PERCENTAGE", "FIXED"):
        db.session.rollback()
        return {"success": False, "error": {"message": "Tipo de recompensa inválido."}}

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to save loyalty settings for studio {studio_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "data": _settings_to_dict(settings)}


def apply_manual_adjustment(studio_id, client_id, direction, amount, reason=None):
    """Staff correction: credits never expire, debits are plain DEBIT rows."""
    if direction not in ("CREDIT", "DEBIT"):
        return {"success": False, "error": {"message": "Tipo de ajuste inválido."}}
    record = create_transaction(
        {
            "studio_id": studio_id,
            "client_id": client_id,
            "type": "MANUAL_ADJUST" if direction == "CREDIT" else "DEBIT",
            "amount": amount,
            "description": reason or "Ajuste Manual",
        }
    )
    if record is None:
        return {"success": False, "error": {"message": "Não foi possível registrar o ajuste."}}
    return {"success": True, "data": serialize_transaction(record)}


def compute_reward(final_value: Decimal, settings) -> Decimal:
    if not settings["is_active"] or final_value <= 0:
        return ZERO
    reward_value = Decimal(str(settings["reward_value"]))
    if settings["reward_type"] == "FIXED":
        return _money(reward_value)
    return _money(final_value * reward_value / Decimal("100"))


def checkout_session(session_id, price, use_loyalty=False, now=None):
    """
    Closes a session: optionally redeems cashback, grants new cashback on the
    amount actually paid, and marks the session completed and paid.
    """
    now = now or local_now()
    session = db.session.get(Session, session_id)
    if not session:
        return {"success": False, "error": {"message": "Sessão não encontrada."}}
    try:
        gross = _money(price)
    except (InvalidOperation, TypeError, ValueError):
        return {"success": False, "error": {"message": "Valor inválido."}}
    if gross < 0:
        return {"success": False, "error": {"message": "Valor inválido."}}

    debited = ZERO
    if use_loyalty:
        balance = _money(get_client_balance(session.client_id, now=now)["balance"])
        if balance > 0:
            debited = min(balance, gross)
            if debited > 0:
                record = create_transaction(
                    {
                        "studio_id": session.studio_id,
                        "client_id": session.client_id,
                        "appointment_id": session.appointment_id,
                        "type": "DEBIT",
                        "amount": debited,
                        "description": f"Resgate em atendimento #{session.id}",
                    }
                )
                if record is None:
                    return {"success": False, "error": {"message": "Falha ao resgatar cashback."}}

    final_value = max(ZERO, gross - debited)
    settings = get_settings(session.studio_id)
    credited = compute_reward(final_value, settings)
    if credited > 0:
        record = create_transaction(
            {
                "studio_id": session.studio_id,
                "client_id": session.client_id,
                "appointment_id": session.appointment_id,
                "type": "CREDIT",
                "amount": credited,
                "description": f"Cashback sessão #{session.id}",
                "expires_at": now + timedelta(days=settings["validity_days"]),
            }
        )
        if record is None:
            return {"success": False, "error": {"message": "Falha ao gerar cashback."}}

    session.status = "completed"
    session.payment_status = "paid"
    session.price = gross
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _log_error(f"Failed to close session {session_id}: {e}")
        return {"success": False, "error": {"message": str(e)}}

    return {
        "success": True,
        "data": {
            "final_value": float(final_value),
            "debited": float(debited),
            "credited": float(credited),
            "balance": get_client_balance(session.client_id, now=now)["balance"],
        },
    }
