"""
Proximity ranking for located entities (listings, communities).

Distances are derived per reference and returned alongside each entity; they are never
written back onto the entity, so a moved reference can't leave stale values around.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, Protocol, TypeVar

from bloommarket.core.geo import LatLon, distance_km


class Located(Protocol):
    @property
    def location(self) -> LatLon: ...


T = TypeVar("T", bound=Located)


@dataclass(frozen=True)
class Ranked(Generic[T]):
    item: T
    distance_km: float


def rank(
    reference: LatLon | None,
    entities: Iterable[T],
    *,
    max_distance_km: float | None = None,
    limit: int | None = None,
) -> list[Ranked[T]]:
    """Return `entities` ordered by ascending distance from `reference`.

    Ties keep their input order (Python's sort is stable). `max_distance_km` and `limit`
    are applied after sorting. The input is not mutated.

    Raises:
        ValueError: If `reference` is None; callers must pick a fallback or skip ranking.
        InvalidCoordinate: If the reference or any entity location is out of range.
    """
    if reference is None:
        raise ValueError("rank() needs a reference coordinate")

    ranked = [Ranked(item=e, distance_km=distance_km(reference, e.location)) for e in entities]
    ranked.sort(key=lambda r: r.distance_km)
    return trim(ranked, max_distance_km=max_distance_km, limit=limit)


def trim(
    ranked: list[Ranked[T]], *, max_distance_km: float | None = None, limit: int | None = None
) -> list[Ranked[T]]:
    """Apply the distance cut-off, then `limit`, to an already ranked list."""
    if max_distance_km is not None:
        ranked = [r for r in ranked if r.distance_km <= float(max_distance_km)]
    if limit is not None:
        ranked = ranked[: max(0, int(limit))]
    return list(ranked)
