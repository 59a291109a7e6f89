"""Filing inventory table for the durable backend."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


class FilingRecordRow(Base):
    """Persisted filing record; one row per ``(url, scope)``."""

    __tablename__ = "filing_records"
    __table_args__ = (UniqueConstraint("url", "scope", name="uq_filing_records_url_scope"),)

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    entity_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    form: Mapped[str] = mapped_column(String(20), nullable=False)
    filing_date: Mapped[date] = mapped_column(Date, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)
    processed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    success: Mapped[bool | None] = mapped_column(Boolean)
    error_message: Mapped[str | None] = mapped_column(Text)
    # "" is the unscoped partition so the unique constraint covers it
    scope: Mapped[str] = mapped_column(
        String(100), index=True, nullable=False, default="", server_default=""
    )

    def __repr__(self) -> str:
        return (
            f"<FilingRecordRow(url={self.url!r}, form={self.form!r}, "
            f"processed={self.processed!r}, scope={self.scope!r})>"
        )
