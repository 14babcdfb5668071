"""Doctor registry: stable doctor identities resolved from free-text names."""

from __future__ import annotations

import datetime as dt
import json
import logging
import re
from dataclasses import dataclass, field

from clinic_portal.extensions import db
from clinic_portal.models import Doctor
from clinic_portal.records import OB_GYNE, PEDIATRIC, ClinicSettings, DoctorSettings, WEEKDAYS

log = logging.getLogger(__name__)

OBGYNE_ID = "ob-gyne"
PEDIATRIC_ID = "pediatric"

DEFAULT_COLORS = {
    OBGYNE_ID: "#3b82f6",
    PEDIATRIC_ID: "#0ea5e9",
}
CONFIRMED_COLORS = {
    OBGYNE_ID: "#1d4ed8",
    PEDIATRIC_ID: "#0369a1",
}

SERVICES: dict[str, tuple[str, ...]] = {
    OB_GYNE: (
        "PRENATAL_CHECKUP",
        "POSTNATAL_CHECKUP",
        "CHILDBIRTH_CONSULTATION",
        "DILATATION_CURETTAGE",
        "FAMILY_PLANNING",
        "PAP_SMEAR",
        "WOMEN_VACCINATION",
        "PCOS_CONSULTATION",
        "STI_CONSULTATION",
        "INFERTILITY_CONSULTATION",
        "MENOPAUSE_CONSULTATION",
    ),
    PEDIATRIC: (
        "NEWBORN_CONSULTATION",
        "WELL_BABY_CHECKUP",
        "WELL_CHILD_CHECKUP",
        "PEDIATRIC_EVALUATION",
        "CHILD_VACCINATION",
        "EAR_PIERCING",
        "PEDIATRIC_REFERRAL",
    ),
}

# Legacy name fragments the backend still stores on older appointments.
_SUBSTRING_KEYWORDS = {
    OBGYNE_ID: ("maria", "ob-gyne", "obgyne"),
    PEDIATRIC_ID: ("shara", "pediatric", "pedia"),
}
_TOKEN_KEYWORDS = {
    OBGYNE_ID: ("ob",),
    PEDIATRIC_ID: (),
}

_TYPE_BY_ID = {OBGYNE_ID: OB_GYNE, PEDIATRIC_ID: PEDIATRIC}


def _norm(value: str | None) -> str:
    return (value or "").strip().casefold()


@dataclass(frozen=True)
class DoctorProfile:
    id: str
    label: str
    doctor_type: str
    color: str
    aliases: tuple[str, ...] = ()
    hours: dict[str, str] = field(default_factory=dict)

    @property
    def confirmed_color(self) -> str:
        return CONFIRMED_COLORS.get(self.id, self.color)

    @property
    def services(self) -> tuple[str, ...]:
        return SERVICES[self.doctor_type]

    @property
    def type_label(self) -> str:
        return "OB-GYNE" if self.doctor_type == OB_GYNE else "Pediatrics"

    def works_on(self, day: dt.date) -> bool:
        return bool((self.hours.get(WEEKDAYS[day.weekday()]) or "").strip())

    def hours_summary(self) -> str:
        return ", ".join(
            f"{day[:3].title()} {hours}" for day in WEEKDAYS if (hours := self.hours.get(day))
        )

    def known_names(self) -> tuple[str, ...]:
        return (self.label, *self.aliases)


class DoctorRegistry:
    """Resolve raw ``doctorName`` strings to :class:`DoctorProfile` entries."""

    def __init__(self, doctors: list[DoctorProfile]) -> None:
        self._doctors = list(doctors)
        self._by_id = {doc.id: doc for doc in self._doctors}

    def __iter__(self):
        return iter(self._doctors)

    def __len__(self) -> int:
        return len(self._doctors)

    @property
    def labels(self) -> list[str]:
        return [doc.label for doc in self._doctors]

    def get(self, doctor_id: str) -> DoctorProfile | None:
        return self._by_id.get(doctor_id)

    def by_label(self, label: str) -> DoctorProfile | None:
        for doc in self._doctors:
            if doc.label == label:
                return doc
        return None

    def resolve(self, raw_name: str | None) -> DoctorProfile | None:
        name = _norm(raw_name)
        if not name:
            return None
        for doc in self._doctors:
            if name == _norm(doc.label) or doc.id == name:
                return doc
        for doc in self._doctors:
            if any(name == _norm(alias) for alias in doc.aliases):
                return doc
        for doc in self._doctors:
            label = _norm(doc.label)
            if label and (label in name or name in label):
                return doc
        tokens = set(re.split(r"[^a-z0-9]+", name))
        for doc in self._doctors:
            if any(key in name for key in _SUBSTRING_KEYWORDS.get(doc.id, ())):
                return doc
            if any(key in tokens for key in _TOKEN_KEYWORDS.get(doc.id, ())):
                return doc
        return None

    def doctor_type_for(self, raw_name: str | None) -> str:
        doc = self.resolve(raw_name)
        return doc.doctor_type if doc else PEDIATRIC

    def services_for(self, raw_name: str | None) -> tuple[str, ...]:
        return SERVICES[self.doctor_type_for(raw_name)]

    def matches(self, raw_name: str | None, selection: list[str] | None) -> bool:
        """True when ``raw_name`` belongs to one of the selected doctors (empty = all)."""
        if not selection:
            return True
        if not raw_name:
            return False
        doc = self.resolve(raw_name)
        for choice in selection:
            wanted = self.get(choice) or self.resolve(choice)
            if doc is not None and wanted is not None and doc.id == wanted.id:
                return True
            if doc is None and _norm(choice) == _norm(raw_name):
                return True
        return False

    def display_label(self, raw_name: str | None) -> str:
        doc = self.resolve(raw_name)
        if doc is not None:
            return doc.label
        return raw_name or "Unknown Doctor"


def _settings_blocks(settings: ClinicSettings) -> list[tuple[str, DoctorSettings]]:
    return [(OBGYNE_ID, settings.obgyne_doctor), (PEDIATRIC_ID, settings.pediatrician)]


def _aliases(row: Doctor | None) -> list[str]:
    if row is None or not row.aliases:
        return []
    try:
        value = json.loads(row.aliases)
    except ValueError:
        return []
    return [str(v) for v in value if v]


def build_registry(settings: ClinicSettings, rows: dict[str, Doctor] | None = None) -> DoctorRegistry:
    rows = rows or {}
    doctors = []
    for doctor_id, block in _settings_blocks(settings):
        row = rows.get(doctor_id)
        doctors.append(
            DoctorProfile(
                id=doctor_id,
                label=block.name,
                doctor_type=_TYPE_BY_ID[doctor_id],
                color=(row.color if row is not None and row.color else DEFAULT_COLORS[doctor_id]),
                aliases=tuple(a for a in _aliases(row) if a != block.name),
                hours=dict(block.hours),
            )
        )
    return DoctorRegistry(doctors)


def sync_doctors(settings: ClinicSettings) -> DoctorRegistry:
    """Upsert the doctor rows from settings, remembering renamed labels as aliases."""
    session = db.session
    rows = {row.id: row for row in session.query(Doctor).all()}
    changed = False
    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    for doctor_id, block in _settings_blocks(settings):
        row = rows.get(doctor_id)
        if row is None:
            row = Doctor(
                id=doctor_id,
                doctor_label=block.name,
                doctor_type=_TYPE_BY_ID[doctor_id],
                color=DEFAULT_COLORS[doctor_id],
                aliases="[]",
                updated_at=now,
            )
            session.add(row)
            rows[doctor_id] = row
            changed = True
        elif row.doctor_label != block.name:
            aliases = _aliases(row)
            if row.doctor_label not in aliases:
                aliases.append(row.doctor_label)
            log.info("Doctor %s renamed from %r to %r", doctor_id, row.doctor_label, block.name)
            row.aliases = json.dumps(aliases)
            row.doctor_label = block.name
            row.updated_at = now
            changed = True
    if changed:
        session.commit()
    return build_registry(settings, rows)


_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def set_doctor_color(doctor_id: str, color: str) -> None:
    """Store a calendar colour override for ``doctor_id``."""
    if doctor_id not in _TYPE_BY_ID:
        raise KeyError(doctor_id)
    if not _HEX_COLOR.match(color or ""):
        raise ValueError("Colour must be a hex value like #3b82f6")
    row = db.session.get(Doctor, doctor_id)
    if row is None:
        raise KeyError(doctor_id)
    row.color = color.lower()
    row.updated_at = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    db.session.commit()


def reset_doctor_colors() -> None:
    for row in db.session.query(Doctor).all():
        row.color = DEFAULT_COLORS.get(row.id, row.color)
    db.session.commit()
