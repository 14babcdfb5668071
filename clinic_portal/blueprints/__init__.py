import logging
from importlib import import_module

__all__ = ["register_blueprints"]

log = logging.getLogger(__name__)


def register_blueprints(app) -> None:
    """Register project blueprints exactly once (idempotent)."""
    modules = [
        "clinic_portal.blueprints.core",
        "clinic_portal.blueprints.auth.routes",
        "clinic_portal.blueprints.appointments.routes",
        "clinic_portal.blueprints.patients.routes",
        "clinic_portal.blueprints.reports.routes",
        "clinic_portal.blueprints.settings",
        "clinic_portal.blueprints.portal.routes",
    ]

    for mod_name in modules:
        module = import_module(mod_name)
        bp = getattr(module, "bp", None)
        if bp is None:
            log.warning("%s defines no blueprint", mod_name)
            continue
        if bp.name in app.blueprints:
            continue
        app.register_blueprint(bp)

    if "core.index" in app.view_functions and "index" not in app.view_functions:
        app.add_url_rule("/", endpoint="index", view_func=app.view_functions["core.index"])
