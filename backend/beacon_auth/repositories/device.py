"""Device repository: upsert-on-login and listing."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from beacon_auth.models.device import Device
from beacon_auth.repositories.base import BaseRepository


class DeviceRepository(BaseRepository[Device]):
    """Persistence-only repository for :class:`Device`."""

    model = Device

    def get_for_principal(self, principal_id: int, device_id: str) -> Device | None:
        return self.find_one(principal_id=principal_id, device_id=device_id)

    def touch(
        self,
        *,
        principal_id: int,
        device_id: str,
        platform: str,
        user_agent: str,
        seen_at: datetime,
    ) -> Device:
        """Create the device row or refresh its platform, user agent and last-seen time.

        The insert runs under a SAVEPOINT: when a concurrent first login from
        the same device wins ``uq_devices_principal_device``, the savepoint is
        rolled back and the winner's row is updated instead.

        :returns: The persisted device.
        """
        device = self.get_for_principal(principal_id, device_id)
        if device is None:
            try:
                with self.session.begin_nested():
                    return self.add(
                        Device(
                            principal_id=principal_id,
                            device_id=device_id,
                            platform=platform,
                            user_agent=user_agent,
                            last_seen_at=seen_at,
                        )
                    )
            except IntegrityError:
                device = self.get_for_principal(principal_id, device_id)
                if device is None:
                    raise
        device.platform = platform
        device.user_agent = user_agent
        device.last_seen_at = seen_at
        self.flush()
        return device

    def list_for_principal(self, principal_id: int) -> Sequence[Device]:
        """List a principal's devices, most recently seen first."""
        stmt = (
            select(Device)
            .where(Device.principal_id == principal_id)
            .order_by(Device.last_seen_at.desc(), Device.id.desc())
        )
        return list(self.session.execute(stmt).scalars())
