"""Shared Flask extension instances, bound to an app in ``create_app``."""
from __future__ import annotations

from flask_caching import Cache
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Deterministic index/constraint names across SQLite and PostgreSQL
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

db = SQLAlchemy(metadata=MetaData(naming_convention=NAMING_CONVENTION))

# Option lists for size pickers; never consulted when validating stock
cache = Cache()

# Only used to name the acting user in the audit trail
login_manager = LoginManager()


@login_manager.user_loader
def load_acting_user(user_id: str):
    from .models import User

    if not str(user_id).isdigit():
        return None
    user = db.session.get(User, int(user_id))
    if user is None or not user.is_active:
        return None
    return user
