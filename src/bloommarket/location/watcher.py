"""
Location watcher.

Bridges a platform location source to the session:
- `start()` begins one observation and reports through callbacks,
- a single successful fix resolves the observation, after which it is released,
- periodic re-polling is the owner's job (`AppSession` re-invokes `start()` on a timer).

Failures never escape `start()`: they are mapped to a `LocationErrorKind` and handed to
`on_error`, so the caller decides how to degrade (usually: keep waiting for a location).
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError

from bloommarket.config.settings import LocationSettings
from bloommarket.core.errors import LocationError, LocationErrorKind, LocationTimeout, LocationUnavailable, LocationUnsupported
from bloommarket.domain.models import Coordinate, format_address

logger = logging.getLogger(__name__)

OnUpdate = Callable[[Coordinate], Awaitable[None] | None]
OnError = Callable[[LocationErrorKind], Awaitable[None] | None]
AddressFormatter = Callable[[float, float], str]


class LocationSource(Protocol):
    """Platform bridge: one fix as `(latitude, longitude)`, or raise `LocationError`."""

    async def get_position(
        self, *, high_accuracy: bool, timeout_seconds: float, maximum_age_seconds: float
    ) -> tuple[float, float]: ...


@dataclass(frozen=True)
class StaticLocationSource:
    """Always reports the same position (CLI runs, demos, fixed kiosks)."""

    latitude: float
    longitude: float

    async def get_position(
        self, *, high_accuracy: bool, timeout_seconds: float, maximum_age_seconds: float
    ) -> tuple[float, float]:
        return self.latitude, self.longitude


@dataclass(eq=False)
class WatchHandle:
    watch_id: int
    _task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait(self) -> None:
        """Wait until the observation has resolved, failed, or been stopped."""
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class LocationWatcher:
    def __init__(
        self,
        source: LocationSource | None,
        settings: LocationSettings,
        *,
        address_formatter: AddressFormatter = format_address,
    ):
        self._source = source
        self._settings = settings
        self._address_formatter = address_formatter
        self._ids = itertools.count(1)
        self._active: dict[int, WatchHandle] = {}

    @property
    def supported(self) -> bool:
        return self._source is not None

    async def acquire_once(self) -> Coordinate:
        """Take a single fix.

        Raises:
            LocationError: One of the `LocationErrorKind` subclasses.
        """
        if self._source is None:
            raise LocationUnsupported("No location source available. Some features may be limited.")

        timeout = float(self._settings.fix_timeout_seconds)
        try:
            lat, lon = await asyncio.wait_for(
                self._source.get_position(
                    high_accuracy=self._settings.high_accuracy,
                    timeout_seconds=timeout,
                    maximum_age_seconds=float(self._settings.maximum_age_seconds),
                ),
                timeout=timeout,
            )
        except LocationError:
            raise
        except asyncio.TimeoutError as exc:
            raise LocationTimeout("Location request timed out. Please check your connection.") from exc
        except (OSError, TypeError, ValueError) as exc:
            raise LocationUnavailable(f"Location source failed: {exc}") from exc

        try:
            return Coordinate(latitude=lat, longitude=lon, address=self._address_formatter(lat, lon))
        except ValidationError as exc:
            raise LocationUnavailable(f"Location source returned an invalid position ({lat}, {lon})") from exc

    def start(self, on_update: OnUpdate, on_error: OnError) -> WatchHandle:
        """Begin one observation; must be called from a running event loop."""
        handle = WatchHandle(watch_id=next(self._ids))
        handle._task = asyncio.get_running_loop().create_task(self._observe(handle, on_update, on_error))
        self._active[handle.watch_id] = handle
        return handle

    def stop(self, handle: WatchHandle) -> None:
        """Release an observation. Safe to call repeatedly or after it resolved."""
        self._active.pop(handle.watch_id, None)
        if handle.active:
            handle._task.cancel()

    def stop_all(self) -> None:
        for handle in list(self._active.values()):
            self.stop(handle)

    async def _observe(self, handle: WatchHandle, on_update: OnUpdate, on_error: OnError) -> None:
        try:
            try:
                coordinate = await self.acquire_once()
            except LocationError as exc:
                logger.warning("Location fix failed (%s): %s", exc.kind.value, exc.message)
                await _maybe_await(on_error(exc.kind))
                return
            logger.debug("Location fix %s", coordinate.address)
            await _maybe_await(on_update(coordinate))
        except asyncio.CancelledError:
            logger.debug("Location watch %s cancelled", handle.watch_id)
            raise
        except Exception:
            # Callback errors have nowhere else to go from a background task.
            logger.exception("Location watch %s callback failed", handle.watch_id)
        finally:
            self._active.pop(handle.watch_id, None)
