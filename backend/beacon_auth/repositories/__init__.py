"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from beacon_auth.repositories.base import BaseRepository
from beacon_auth.repositories.device import DeviceRepository
from beacon_auth.repositories.principal import PrincipalRepository
from beacon_auth.repositories.session_node import SessionNodeRepository

__all__ = [
    "BaseRepository",
    "DeviceRepository",
    "PrincipalRepository",
    "SessionNodeRepository",
]
