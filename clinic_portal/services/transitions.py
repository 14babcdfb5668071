"""Staff-side appointment status transitions.

Each transition is checked against the appointment's current status before the
backend is called; the caller refetches the list after a successful call.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from clinic_portal.records import (
    CANCELLATION_PENDING,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    SCHEDULED,
    Appointment,
)
from clinic_portal.services.api_client import StaffAPI
from clinic_portal.services.timefmt import TIME_SLOTS

log = logging.getLogger(__name__)

CONFIRM = "confirm"
COMPLETE = "complete"
CANCEL = "cancel"
RESCHEDULE = "reschedule"
APPROVE_CANCELLATION = "approve-cancellation"
REJECT_CANCELLATION = "reject-cancellation"

RESCHEDULE_REASON = "Rescheduled by staff"
CANCEL_REASON = "Cancelled by staff"


@dataclass(frozen=True)
class Action:
    key: str
    label: str
    allowed_from: frozenset[str]
    success_message: str
    style: str = "primary"


ACTIONS: dict[str, Action] = {
    CONFIRM: Action(CONFIRM, "Confirm", frozenset({SCHEDULED}), "Appointment confirmed"),
    COMPLETE: Action(COMPLETE, "Mark Completed", frozenset({CONFIRMED}), "Appointment marked as completed", "success"),
    RESCHEDULE: Action(RESCHEDULE, "Reschedule", frozenset({SCHEDULED, CONFIRMED}), "Appointment rescheduled", "secondary"),
    CANCEL: Action(CANCEL, "Cancel", frozenset({SCHEDULED, CONFIRMED}), "Appointment cancelled", "danger"),
    APPROVE_CANCELLATION: Action(
        APPROVE_CANCELLATION,
        "Approve Cancellation",
        frozenset({CANCELLATION_PENDING}),
        "Cancellation request approved",
        "danger",
    ),
    REJECT_CANCELLATION: Action(
        REJECT_CANCELLATION,
        "Reject Cancellation",
        frozenset({CANCELLATION_PENDING}),
        "Cancellation request rejected",
        "secondary",
    ),
}


class TransitionNotAllowed(Exception):
    def __init__(self, action: str, status: str) -> None:
        super().__init__(f"Cannot {action.replace('-', ' ')} an appointment that is {status or 'unknown'}")
        self.action = action
        self.status = status


def available_actions(appt: Appointment) -> list[Action]:
    return [action for action in ACTIONS.values() if appt.status in action.allowed_from]


def _check(action: str, appt: Appointment) -> Action:
    rule = ACTIONS.get(action)
    if rule is None:
        raise KeyError(action)
    if appt.status not in rule.allowed_from:
        raise TransitionNotAllowed(action, appt.status)
    return rule


def confirm(api: StaffAPI, appt: Appointment):
    _check(CONFIRM, appt)
    return api.appointments.update_status(appt.id, {"status": CONFIRMED})


def complete(api: StaffAPI, appt: Appointment):
    _check(COMPLETE, appt)
    return api.appointments.update_status(appt.id, {"status": COMPLETED})


def cancel(api: StaffAPI, appt: Appointment, reason: str | None = None):
    _check(CANCEL, appt)
    return api.appointments.update_status(
        appt.id, {"status": CANCELLED, "reason": (reason or "").strip() or CANCEL_REASON}
    )


def reschedule(api: StaffAPI, appt: Appointment, new_date: dt.date, new_time: str):
    _check(RESCHEDULE, appt)
    if new_time not in TIME_SLOTS:
        raise ValueError(f"{new_time!r} is not a bookable time slot")
    log.info("Rescheduling %s to %s %s", appt.id, new_date.isoformat(), new_time)
    return api.appointments.reschedule(
        appt.id,
        {"newDate": new_date.isoformat(), "newTime": new_time, "reason": RESCHEDULE_REASON},
    )


def approve_cancellation(api: StaffAPI, appt: Appointment, notes: str | None = None):
    _check(APPROVE_CANCELLATION, appt)
    return api.appointments.approve_cancellation(appt.id, {"adminNotes": notes} if notes else None)


def reject_cancellation(api: StaffAPI, appt: Appointment, notes: str | None = None):
    _check(REJECT_CANCELLATION, appt)
    return api.appointments.reject_cancellation(appt.id, {"adminNotes": notes} if notes else None)


def perform(api: StaffAPI, action: str, appt: Appointment, **kwargs):
    """Dispatch ``action`` by key; raises :class:`TransitionNotAllowed` before any API call."""
    handlers = {
        CONFIRM: confirm,
        COMPLETE: complete,
        CANCEL: cancel,
        RESCHEDULE: reschedule,
        APPROVE_CANCELLATION: approve_cancellation,
        REJECT_CANCELLATION: reject_cancellation,
    }
    if action not in handlers:
        raise KeyError(action)
    return handlers[action](api, appt, **kwargs)
