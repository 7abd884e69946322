"""
Application session state.

`AppSession` is the explicit owner of everything that lives for one signed-in user:
- the identity record (and its last known location, mirrored into the session cache),
- the `ListingCatalog`,
- the `LocationWatcher` and the periodic re-poll task.

Nothing here is a module-level singleton: construct one session per app instance and
tear it down with `sign_out()` / `close()`, which cancel the re-poll task deterministically.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from bloommarket.catalog.listing_catalog import ListingCatalog, SessionState
from bloommarket.config.settings import Settings
from bloommarket.core.env import resolve_project_path
from bloommarket.core.errors import LocationErrorKind
from bloommarket.core.session_cache import SessionCache
from bloommarket.domain.models import Coordinate, UserProfile
from bloommarket.ingestion.base import MarketDataService
from bloommarket.location.watcher import LocationSource, LocationWatcher

logger = logging.getLogger(__name__)


def build_session_cache(settings: Settings) -> SessionCache:
    return SessionCache(
        Path(resolve_project_path(settings.session_cache.dir)),
        enabled=settings.session_cache.enabled,
    )


class AppSession:
    def __init__(
        self,
        settings: Settings,
        *,
        data_service: MarketDataService,
        location_source: LocationSource | None,
        session_cache: SessionCache | None = None,
    ):
        self._settings = settings
        self._cache = session_cache
        self._cache_key = settings.session_cache.key
        self.catalog = ListingCatalog(data_service, material_change_km=settings.catalog.material_change_km)
        self.watcher = LocationWatcher(location_source, settings.location)

        self._user: UserProfile | None = None
        self._poll_task: asyncio.Task | None = None
        self.last_location_error: LocationErrorKind | None = None

    @property
    def user(self) -> UserProfile | None:
        return self._user

    @property
    def state(self) -> SessionState:
        return self.catalog.state

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def _persist_user(self) -> None:
        if self._cache is not None and self._user is not None:
            self._cache.save_user(self._cache_key, self._user)

    async def sign_in(self, identity: UserProfile) -> None:
        """Start a session: restore the cached location, load orders, resolve a fix if needed, start re-polling."""
        if self._user is not None:
            await self.sign_out()

        if identity.location is None and self._cache is not None:
            cached = self._cache.load_user(self._cache_key)
            if cached is not None and cached.user_id == identity.user_id and cached.location is not None:
                identity = identity.model_copy(update={"location": cached.location})

        self._user = identity
        self._persist_user()
        self.catalog.sign_in(identity)
        await self.catalog.load_orders(identity.user_id)

        if identity.location is not None:
            await self.catalog.update_location(identity.location)
        else:
            await self.request_location()
        self.start_polling()

    async def sign_out(self) -> None:
        """Any state -> Unauthenticated; stops polling and clears cached user state."""
        await self.stop_polling()
        self.watcher.stop_all()
        self.catalog.sign_out()
        if self._cache is not None:
            self._cache.remove(self._cache_key)
        self._user = None
        self.last_location_error = None

    async def close(self) -> None:
        """Release background work without forgetting the cached user."""
        await self.stop_polling()
        self.watcher.stop_all()

    async def __aenter__(self) -> "AppSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request_location(self) -> Coordinate | None:
        """Run one watch cycle; returns the coordinate in effect afterwards."""
        handle = self.watcher.start(self._on_fix, self._on_location_error)
        await handle.wait()
        return self.catalog.reference

    async def _on_fix(self, coordinate: Coordinate) -> None:
        if self._user is None:
            return
        self.last_location_error = None
        self._user = self._user.model_copy(update={"location": coordinate})
        self._persist_user()
        await self.catalog.update_location(coordinate)

    def _on_location_error(self, kind: LocationErrorKind) -> None:
        # The session keeps going; the UI shows an "enable location" affordance instead.
        self.last_location_error = kind
        logger.info("Continuing without a new location (%s); state=%s", kind.value, self.catalog.state.value)

    def start_polling(self) -> None:
        if self.polling:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _poll_loop(self) -> None:
        interval = float(self._settings.location.poll_interval_seconds)
        while True:
            await asyncio.sleep(interval)
            if self._user is None:
                return
            await self.request_location()
