"""Unit tests for Registration."""

import json

import pytest

from shell_cache.controller import (
    CacheStorage,
    ControllerConfig,
    ControllerState,
    InstallError,
    InterceptedRequest,
    Registration,
)
from shell_cache.controller.registration import REGISTRATION_FILE, read_registration

from .conftest import ORIGIN, FakeClock, FakeOrigin


@pytest.fixture
def registration(
    storage: CacheStorage, origin: FakeOrigin, clock: FakeClock
) -> Registration:
    return Registration(storage, origin.fetcher(), clock=clock)


def _v3() -> ControllerConfig:
    return ControllerConfig(
        origin=ORIGIN,
        static_cache_name="app-shell-v3",
        dynamic_cache_name="app-shell-dynamic-v3",
    )


class TestRegistration:
    """Tests for install/activate orchestration."""

    @pytest.mark.asyncio
    async def test_update_activates_and_persists(
        self, registration: Registration, config: ControllerConfig
    ) -> None:
        """A successful update makes the controller active and records it."""
        controller = registration.controller_for(config)
        await registration.update(controller)
        assert registration.active is controller
        assert controller.state is ControllerState.ACTIVE
        assert read_registration(registration.storage) == config

    @pytest.mark.asyncio
    async def test_new_version_replaces_old(
        self, registration: Registration, config: ControllerConfig
    ) -> None:
        """The previous controller is retired and its caches purged."""
        old = registration.controller_for(config)
        await registration.update(old)
        new = registration.controller_for(_v3())
        deleted = await registration.update(new)
        assert old.state is ControllerState.REDUNDANT
        assert registration.active is new
        assert "app-shell-v2" in deleted
        assert registration.storage.keys() == ["app-shell-v3"]

    @pytest.mark.asyncio
    async def test_failed_update_keeps_previous(
        self,
        registration: Registration,
        config: ControllerConfig,
        origin: FakeOrigin,
    ) -> None:
        """If the new install fails the old version keeps serving."""
        old = registration.controller_for(config)
        await registration.update(old)
        origin.offline = True
        new = registration.controller_for(_v3())
        with pytest.raises(InstallError):
            await registration.update(new)
        assert registration.active is old
        assert old.state is ControllerState.ACTIVE
        assert new.state is ControllerState.REDUNDANT
        assert read_registration(registration.storage) == config

        result = await registration.handle(InterceptedRequest(url="/"))
        assert result.from_cache is True
        assert result.cache_name == "app-shell-v2"

    @pytest.mark.asyncio
    async def test_handle_without_controller_uses_network(
        self, registration: Registration, origin: FakeOrigin
    ) -> None:
        """With nothing registered requests go straight to the network."""
        result = await registration.handle(
            InterceptedRequest(url=f"{ORIGIN}/manifest.json", destination="script")
        )
        assert result.from_cache is False
        assert origin.calls_to("/manifest.json") == 1
        assert registration.storage.keys() == []

    @pytest.mark.asyncio
    async def test_load_restores_active_controller(
        self,
        registration: Registration,
        config: ControllerConfig,
        storage: CacheStorage,
        origin: FakeOrigin,
        clock: FakeClock,
    ) -> None:
        """A second registration over the same storage picks up the record."""
        await registration.update(registration.controller_for(config))
        origin.offline = True

        restored = Registration(storage, origin.fetcher(), clock=clock)
        controller = restored.load()
        assert controller is not None
        assert controller.state is ControllerState.ACTIVE
        result = await restored.handle(InterceptedRequest(url="/offline.html"))
        assert result.body == b"<html>offline</html>"

    def test_load_without_record(self, registration: Registration) -> None:
        """No record means no controller."""
        assert registration.load() is None
        assert registration.active is None

    def test_load_ignores_corrupted_record(self, registration: Registration) -> None:
        """An unreadable record is removed."""
        record = registration.storage.root / REGISTRATION_FILE
        record.write_text("{ not json")
        assert registration.load() is None
        assert not record.exists()

    def test_load_ignores_invalid_config(self, registration: Registration) -> None:
        """A record with an invalid configuration is removed."""
        record = registration.storage.root / REGISTRATION_FILE
        record.write_text(json.dumps({"origin": "not-a-url"}))
        assert registration.load() is None
        assert not record.exists()

    @pytest.mark.asyncio
    async def test_unregister(
        self, registration: Registration, config: ControllerConfig
    ) -> None:
        """Unregistering retires the controller but keeps caches."""
        controller = registration.controller_for(config)
        await registration.update(controller)
        registration.unregister()
        assert registration.active is None
        assert controller.state is ControllerState.REDUNDANT
        assert read_registration(registration.storage) is None
        assert "app-shell-v2" in registration.storage.keys()
