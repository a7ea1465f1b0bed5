"""Appointment status labels (as shown to staff) and their stored codes."""

STATUS_TO_DB = {
    "Pendente": "pending",
    "Confirmado": "confirmed",
    "Finalizado": "completed",
    "Concluído": "completed",
    "Realizado": "completed",
    "Cancelado": "cancelled",
    "Ausente": "no_show",
    "No Show": "no_show",
    "Em Andamento": "confirmed",
    "pending": "pending",
    "confirmed": "confirmed",
    "completed": "completed",
    "cancelled": "cancelled",
    "no_show": "no_show",
    "in_progress": "confirmed",
}

STATUS_FROM_DB = {
    "pending": "Pendente",
    "confirmed": "Confirmado",
    "completed": "Finalizado",
    "cancelled": "Cancelado",
    "no_show": "Ausente",
    "in_progress": "Em Andamento",
}

# Session rows use their own, shorter display vocabulary
SESSION_STATUS_LABELS = {
    "completed": "Finalizado",
    "pending": "Pendente",
    "draft": "Rascunho",
}


def to_db_status(label):
    """Unknown labels are returned untouched."""
    if label is None:
        return None
    return STATUS_TO_DB.get(label, label)


def from_db_status(code):
    if code is None:
        return None
    return STATUS_FROM_DB.get(code, code)


def session_status_label(code):
    return SESSION_STATUS_LABELS.get(code, code)
