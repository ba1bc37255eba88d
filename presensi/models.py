from __future__ import annotations

from sqlalchemy.orm import validates

from .app import db
from .constants import GENDER_CHOICES
from .shared.time import event_date_key, isoformat_utc, now_utc


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.Text)
    gender = db.Column(db.String(1))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )

    attendance = db.relationship(
        "Attendance",
        back_populates="participant",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("ix_participants_name_lower", db.func.lower(name), unique=True),
        db.CheckConstraint(
            "gender IS NULL OR gender IN ('L', 'P')", name="ck_participants_gender"
        ),
    )

    @validates("name")
    def strip_name(self, key, value):  # pragma: no cover - simple normalizer
        return (value or "").strip()

    @validates("gender")
    def check_gender(self, key, value):
        if value in (None, ""):
            return None
        if value not in GENDER_CHOICES:
            raise ValueError(f"gender must be one of {GENDER_CHOICES}")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "gender": self.gender,
            "createdAt": isoformat_utc(self.created_at),
            "updatedAt": isoformat_utc(self.updated_at),
        }


class Attendance(db.Model):
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=now_utc)
    event_date = db.Column(db.Date, nullable=False, index=True)
    device_id = db.Column(db.String(255))
    participant_id = db.Column(
        db.Integer,
        db.ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    participant = db.relationship("Participant", back_populates="attendance")

    __table_args__ = (
        db.UniqueConstraint(
            "participant_id", "event_date", name="uq_attendance_participant_event_date"
        ),
    )

    def to_dict(self, include_participant: bool = True) -> dict:
        data = {
            "id": self.id,
            "createdAt": isoformat_utc(self.created_at),
            "eventDate": event_date_key(self.event_date),
            "deviceId": self.device_id,
            "participantId": self.participant_id,
        }
        if include_participant and self.participant is not None:
            data["participant"] = self.participant.to_dict()
        return data
