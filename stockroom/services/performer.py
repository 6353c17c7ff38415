from flask import current_app, has_app_context, has_request_context
from flask_login import current_user

FALLBACK_PERFORMER = 'System'


def resolve_performer(performed_by=None) -> str:
    """Name written to the audit trail for the acting user."""
    if performed_by is not None and str(performed_by).strip():
        return str(performed_by).strip()[:128]

    if has_request_context() and getattr(current_user, 'is_authenticated', False):
        name = getattr(current_user, 'display_name', None)
        if name:
            return name[:128]

    if has_app_context():
        return current_app.config.get('DEFAULT_PERFORMER') or FALLBACK_PERFORMER
    return FALLBACK_PERFORMER
