"""Street light and change history models."""
from datetime import datetime
from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class StreetLight(Base):
    """Current-state row for one street light."""

    __tablename__ = "street_lights"

    # 2-digit village code + 3-digit sequence, e.g. "01050"
    id: Mapped[str] = mapped_column(String(5), primary_key=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class LightHistory(Base):
    """Append-only change log entry for the street light table."""

    __tablename__ = "light_history"

    # Autoincrement keeps insertion order
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    time: Mapped[str] = mapped_column(String(32), nullable=False)
    light_id: Mapped[str] = mapped_column(String(5), nullable=False, index=True)

    # Coordinates are kept as text; empty string means "no value"
    before_lat: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    before_lng: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    after_lat: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    after_lng: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    action: Mapped[str] = mapped_column(String(20), nullable=False)  # new, update, restore, deleteLight
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
