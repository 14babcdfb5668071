from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for the portal's local cache tables."""


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    doctor_label: Mapped[str] = mapped_column(Text, nullable=False)
    doctor_type: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # JSON list of every label this doctor was known by before a rename.
    aliases: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    updated_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)


class ClinicSettingsCache(Base):
    __tablename__ = "clinic_settings_cache"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
