"""Device model: informational record of where a principal signs in from."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from beacon_auth.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin, utcnow

if TYPE_CHECKING:
    from .principal import Principal


class Device(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A ``(principal, device identifier)`` pair.

    Not a security boundary: session nodes reference ``device_id`` by value
    and stay valid even when the device row is gone.
    """

    __tablename__ = "devices"
    __repr_attrs__ = ("id", "principal_id", "device_id")

    principal_id: Mapped[int] = mapped_column(
        ForeignKey("principals.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    principal: Mapped[Principal] = relationship(back_populates="devices")

    __table_args__ = (
        UniqueConstraint("principal_id", "device_id", name="uq_devices_principal_device"),
        Index("ix_devices_principal_id", "principal_id"),
    )
