"""Role -> feature flags for studio members."""

ROLES = ("MASTER", "ARTIST", "PIERCER", "RECEPTIONIST", "CLIENT")

PERMISSION_FLAGS = (
    "can_view_financials",
    "can_view_all_appointments",
    "can_view_all_agenda",
    "can_view_all_sessions",
    "can_create_session",
    "can_filter_by_professional",
    "can_view_client_profile",
    "can_edit_client",
    "can_add_client",
    "can_access_marketing",
    "can_access_loyalty",
    "can_access_settings",
)

_GRANTS = {
    "MASTER": set(PERMISSION_FLAGS),
    # Artists and piercers only see their own agenda and sessions
    "ARTIST": {"can_create_session", "can_add_client"},
    "PIERCER": {"can_create_session", "can_add_client"},
    "RECEPTIONIST": {
        "can_view_all_agenda",
        "can_view_all_sessions",
        "can_filter_by_professional",
        "can_add_client",
        "can_access_marketing",
        "can_access_loyalty",
    },
}


def get_permissions(role):
    granted = _GRANTS.get((role or "").upper(), set())
    return {flag: flag in granted for flag in PERMISSION_FLAGS}


def has_permission(role, flag):
    return get_permissions(role).get(flag, False)
