"""Row lock serializing registry writers across processes."""
from datetime import datetime
from sqlalchemy import DateTime, String, event
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

REGISTRY_LOCK_NAME = "registry"


class RegistryLock(Base):
    """Lock row every mutation updates first.

    The row stays write-locked until the mutation's transaction ends, so
    writers in other processes queue behind it.
    """

    __tablename__ = "registry_locks"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    acquired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


@event.listens_for(RegistryLock.__table__, "after_create")
def _seed_registry_lock(target, connection, **kw):
    connection.execute(target.insert().values(name=REGISTRY_LOCK_NAME))
