"""Flask extension singletons shared across the clinic portal."""

from __future__ import annotations

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

db = SQLAlchemy()
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address, default_limits=[])


def init_extensions(app) -> None:
    db.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)


def ensure_base_tables(app) -> None:
    """Create the local cache tables if they do not exist yet."""
    from clinic_portal.models import Base

    with app.app_context():
        Base.metadata.create_all(db.engine)


__all__ = ["db", "csrf", "limiter", "init_extensions", "ensure_base_tables"]
