"""Registration: which controller version serves an origin."""

import json
import logging
from pathlib import Path

from .config import ConfigError, ControllerConfig
from .controller import CacheController, Clock, utc_now
from .models import ControllerState, FetchResult, InstallError, InterceptedRequest
from .network import NetworkFetcher
from .store import CacheStorage

logger = logging.getLogger(__name__)

REGISTRATION_FILE = "registration.json"


def _record_path(storage: CacheStorage) -> Path:
    return storage.root / REGISTRATION_FILE


def read_registration(storage: CacheStorage) -> ControllerConfig | None:
    """Read the active configuration recorded in a storage directory.

    A record that cannot be read is ignored and removed.
    """
    path = _record_path(storage)
    if not path.exists():
        return None
    try:
        with path.open("r") as f:
            return ControllerConfig.from_dict(json.load(f))
    except (json.JSONDecodeError, ConfigError, TypeError, ValueError) as e:
        logger.warning("Ignoring unreadable registration record: %s", e)
        path.unlink(missing_ok=True)
        return None


class Registration:
    """Holds the active controller and swaps in new versions.

    A new version replaces the active one only after a successful install;
    a failed install leaves the previous version serving.
    """

    def __init__(
        self,
        storage: CacheStorage,
        network: NetworkFetcher,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.storage = storage
        self.network = network
        self.clock = clock
        self.active: CacheController | None = None

    @property
    def _record_path(self) -> Path:
        return _record_path(self.storage)

    def controller_for(self, config: ControllerConfig) -> CacheController:
        """Build a fresh (installing) controller sharing this storage."""
        return CacheController(config, self.storage, self.network, clock=self.clock)

    async def update(self, controller: CacheController) -> list[str]:
        """Install and activate a new controller version.

        Returns
        -------
            Names of the caches purged during activation.

        Raises
        ------
            InstallError: If the install failed; the active controller is kept.
        """
        try:
            await controller.on_install()
        except InstallError:
            kept = self.active.config.static_cache_name if self.active else None
            logger.warning(
                "Install of %s failed, keeping %s",
                controller.config.static_cache_name,
                kept or "no controller",
            )
            controller.retire()
            raise

        # Shell is cached; skip waiting and take over right away
        previous = self.active
        deleted = await controller.on_activate()
        if previous is not None and previous is not controller:
            previous.retire()
        self.active = controller
        self.save()
        return deleted

    async def handle(self, request: InterceptedRequest) -> FetchResult:
        """Route a request through the active controller, or the network."""
        if self.active is None or self.active.state is not ControllerState.ACTIVE:
            return await self.network.fetch(request)
        return await self.active.on_fetch(request)

    def save(self) -> None:
        """Persist the active controller's configuration."""
        if self.active is None:
            self._record_path.unlink(missing_ok=True)
            return
        with self._record_path.open("w") as f:
            json.dump(self.active.config.to_dict(), f, indent=2)

    def load(self) -> CacheController | None:
        """Restore the active controller from the persisted record."""
        config = read_registration(self.storage)
        if config is None:
            return None
        controller = self.controller_for(config)
        controller.state = ControllerState.ACTIVE
        controller.controls_clients = True
        self.active = controller
        return controller

    def unregister(self) -> None:
        """Drop the active controller; caches are left in place."""
        if self.active is not None:
            self.active.retire()
        self.active = None
        self.save()
