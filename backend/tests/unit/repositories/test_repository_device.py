"""Unit tests for DeviceRepository."""

from datetime import UTC, datetime, timedelta

import pytest
from beacon_auth.models.base import as_utc
from beacon_auth.repositories.device import DeviceRepository

from tests.factories.device import DeviceFactory
from tests.factories.principal import PrincipalFactory


class TestDeviceRepository:
    @pytest.fixture()
    def repo(self):
        return DeviceRepository()

    def test_touch_creates_device(self, repo, session):
        p = PrincipalFactory()
        seen = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)

        device = repo.touch(
            principal_id=p.id,
            device_id="phone-1",
            platform="ios",
            user_agent="App/1.0",
            seen_at=seen,
        )
        session.commit()

        fetched = repo.get_for_principal(p.id, "phone-1")
        assert fetched is not None
        assert fetched.id == device.id
        assert fetched.platform == "ios"
        assert as_utc(fetched.last_seen_at) == seen

    def test_touch_updates_existing_device(self, repo, session):
        """A second login from the same device refreshes it instead of duplicating."""
        p = PrincipalFactory()
        first = repo.touch(
            principal_id=p.id,
            device_id="laptop",
            platform="web",
            user_agent="Firefox",
            seen_at=datetime(2026, 3, 1, tzinfo=UTC),
        )
        later = datetime(2026, 3, 2, tzinfo=UTC)
        second = repo.touch(
            principal_id=p.id,
            device_id="laptop",
            platform="web",
            user_agent="Chrome",
            seen_at=later,
        )
        session.commit()

        assert first.id == second.id
        devices = repo.list_for_principal(p.id)
        assert len(devices) == 1
        assert devices[0].user_agent == "Chrome"
        assert as_utc(devices[0].last_seen_at) == later

    def test_same_device_id_for_different_principals(self, repo, session):
        a, b = PrincipalFactory(), PrincipalFactory()
        DeviceFactory(principal=a, device_id="shared")
        DeviceFactory(principal=b, device_id="shared")

        assert repo.get_for_principal(a.id, "shared").principal_id == a.id
        assert repo.get_for_principal(b.id, "shared").principal_id == b.id

    def test_list_most_recent_first(self, repo, session):
        p = PrincipalFactory()
        now = datetime(2026, 3, 10, tzinfo=UTC)
        DeviceFactory(principal=p, device_id="old", last_seen_at=now - timedelta(days=3))
        DeviceFactory(principal=p, device_id="new", last_seen_at=now)
        DeviceFactory(device_id="someone-else")

        assert [d.device_id for d in repo.list_for_principal(p.id)] == ["new", "old"]

    def test_touch_falls_back_to_update_when_a_concurrent_login_inserted_first(
        self, repo, session, monkeypatch
    ):
        """Losing the unique-key race on first login refreshes the winner's row."""
        p = PrincipalFactory()
        winner = DeviceFactory(principal=p, device_id="tablet", platform="android")
        lookups = []
        real_lookup = repo.get_for_principal

        def stale_lookup(principal_id, device_id):
            lookups.append(device_id)
            # The first read happens before the rival insert became visible
            return None if len(lookups) == 1 else real_lookup(principal_id, device_id)

        monkeypatch.setattr(repo, "get_for_principal", stale_lookup)
        later = datetime(2026, 3, 5, tzinfo=UTC)

        device = repo.touch(
            principal_id=p.id,
            device_id="tablet",
            platform="ios",
            user_agent="App/2.0",
            seen_at=later,
        )
        session.commit()

        assert device.id == winner.id
        devices = repo.list_for_principal(p.id)
        assert len(devices) == 1
        assert devices[0].platform == "ios"
        assert as_utc(devices[0].last_seen_at) == later
