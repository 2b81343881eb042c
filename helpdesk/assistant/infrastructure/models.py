"""
Assistant Infrastructure Models
===============================

SQLAlchemy ORM models for the assistant module.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import FaqSource
from helpdesk.infrastructure.database import Base


SETTINGS_ROW_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryTurnModel(Base):
    """
    Database model for MemoryTurn entity.

    Append-only; rows are never updated.
    """
    __tablename__ = "ai_memory_turns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owning user (opaque id from the auth gateway)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Exchange
    message: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    __table_args__ = (
        Index("ix_ai_memory_turns_user_created", "user_id", "created_at"),
    )


class FaqEntryModel(Base):
    """
    Database model for FaqEntry entity.

    Maps to the 'faq_entries' table.
    """
    __tablename__ = "faq_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    question: Mapped[str] = mapped_column(Text, nullable=False)
    # question_key(question); duplicate checks compare this, never SQL lower()
    question_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    answer: Mapped[str] = mapped_column(Text, nullable=False)

    # manual / pdf / conversation
    source: Mapped[FaqSource] = mapped_column(String(50), nullable=False, default=FaqSource.MANUAL)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        index=True
    )


class AssistantSettingsModel(Base):
    """
    Database model for the AvailabilityFlag singleton.

    Always stored under SETTINGS_ROW_ID so concurrent creates collide on the primary key.
    """
    __tablename__ = "ai_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    faq_document_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )
