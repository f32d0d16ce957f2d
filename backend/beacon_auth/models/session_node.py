"""SessionNode model: one row per issued refresh token."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from beacon_auth.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class SessionNode(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A node of a refresh-token family.

    Fields
    ------
    jti : str
        Token identifier embedded in the refresh token (not the bearer string).
    principal_id : int
        Owner.
    device_id : str
        Device the token was issued to.
    revoked : bool
        Irreversible once ``True``.
    successor_jti : str | None
        Node that replaced this one through rotation. Set at most once, in the
        same statement that revokes the node.
    expires_at : datetime
        Same instant as the refresh token's ``exp`` claim.

    Nodes linked through ``successor_jti`` form a singly-linked chain rooted
    at the original login.
    """

    __tablename__ = "session_nodes"
    __repr_attrs__ = ("id", "jti", "revoked", "successor_jti")

    jti: Mapped[str] = mapped_column(String(64), nullable=False)
    principal_id: Mapped[int] = mapped_column(
        ForeignKey("principals.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    successor_jti: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("jti", name="uq_session_nodes_jti"),
        Index("ix_session_nodes_principal_id", "principal_id"),
        Index("ix_session_nodes_expires_at", "expires_at"),
    )
