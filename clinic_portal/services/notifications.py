"""Application-scoped toast bus.

Views publish toasts through :func:`notify`; the default subscriber turns them
into flashed messages that the base template renders and auto-dismisses.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from flask import current_app, flash, has_request_context

log = logging.getLogger(__name__)

SUCCESS = "ok"
ERROR = "err"
INFO = "info"
WARNING = "warn"

DEFAULT_DURATION_MS = 4000


@dataclass(frozen=True)
class Toast:
    message: str
    variant: str = INFO
    duration_ms: int = DEFAULT_DURATION_MS


Listener = Callable[[Toast], None]


class ToastBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, message: str, variant: str = INFO, duration_ms: int = DEFAULT_DURATION_MS) -> Toast:
        toast = Toast(message=message, variant=variant, duration_ms=duration_ms)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(toast)
        return toast


def flash_listener(toast: Toast) -> None:
    if has_request_context():
        flash(toast.message, toast.variant)
    else:
        log.info("toast outside request: %s", toast.message)


def init_notifications(app) -> ToastBus:
    bus = ToastBus()
    bus.subscribe(flash_listener)
    app.extensions["toast_bus"] = bus
    return bus


def notify(message: str, variant: str = INFO) -> Toast:
    bus: ToastBus = current_app.extensions["toast_bus"]
    return bus.publish(message, variant, current_app.config.get("CLINIC_TOAST_DURATION_MS", DEFAULT_DURATION_MS))


def success(message: str) -> Toast:
    return notify(message, SUCCESS)


def error(message: str) -> Toast:
    return notify(message, ERROR)
