"""Repair report model."""
from datetime import date, datetime
from sqlalchemy import JSON, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class RepairReport(Base):
    """A reported fault on one street light and how it was repaired."""

    __tablename__ = "repair_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    light_id: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    # Local time of the report, without timezone
    reported_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    fault: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="未查修", index=True)  # 未查修, 已查修

    repaired_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    repair_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"pre": url, "post": url}, ...]
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
