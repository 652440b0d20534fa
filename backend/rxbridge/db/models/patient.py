from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rxbridge.db.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Patient(Base):
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    age: Mapped[int] = mapped_column(Integer)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    diagnosis: Mapped[str] = mapped_column(Text)
    history: Mapped[List[str]] = mapped_column(JSON, default=list)
    selected_doctor: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)


class Prescription(Base):
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    patient_id: Mapped[str] = mapped_column(String(128), index=True)
    symptoms: Mapped[str] = mapped_column(Text)
    prescription: Mapped[str] = mapped_column(Text)
    doctor_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    doctor_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
