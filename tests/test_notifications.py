from flask import get_flashed_messages

from clinic_portal.services import notifications
from clinic_portal.services.notifications import ToastBus


def test_subscribe_and_unsubscribe():
    bus = ToastBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    toast = bus.publish("Saved", notifications.SUCCESS, 1500)
    assert seen == [toast]
    assert (toast.message, toast.variant, toast.duration_ms) == ("Saved", "ok", 1500)

    unsubscribe()
    unsubscribe()
    bus.publish("Ignored")
    assert len(seen) == 1


def test_notify_flashes_inside_a_request(app):
    app.config["CLINIC_TOAST_DURATION_MS"] = 2500
    with app.test_request_context("/"):
        toast = notifications.error("Something failed")
        notifications.success("Done")
        assert toast.duration_ms == 2500
        assert get_flashed_messages(with_categories=True) == [("err", "Something failed"), ("ok", "Done")]


def test_app_bus_accepts_extra_listeners(app):
    seen = []
    bus = app.extensions["toast_bus"]
    unsubscribe = bus.subscribe(seen.append)
    try:
        with app.app_context():
            notifications.notify("Outside a request", notifications.WARNING)
    finally:
        unsubscribe()
    assert [t.variant for t in seen] == ["warn"]
