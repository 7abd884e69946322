"""
Local mock data service.

Generates a neighbourhood of plant listings and communities around the reference
coordinate so the app is usable without a backend (`catalog.data_source: mock`).
Writes are accepted and echoed back; nothing is stored.
"""

from __future__ import annotations

import random

from bloommarket.config.settings import MockSettings
from bloommarket.core.geo import distance_km, nearby_point
from bloommarket.domain.models import Community, Coordinate, Listing, Order, UserProfile
from bloommarket.ingestion.base import CommunityAction

PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1585090190508-ea73efcdcb69"


class MockMarketData:
    def __init__(self, settings: MockSettings, *, rng: random.Random | None = None):
        self._settings = settings
        self._rng = rng or random.Random(settings.seed)

    async def fetch_listings(self, reference: Coordinate) -> list[Listing]:
        out: list[Listing] = []
        for i in range(self._settings.plant_count):
            location = nearby_point(reference, radius_km=self._settings.radius_km, rng=self._rng)
            km = distance_km(reference, location)
            out.append(
                Listing(
                    id=f"plant_{i}",
                    owner_id=f"user_{i}",
                    owner_name=f"Seller {i}",
                    owner_photo_ref=f"https://api.dicebear.com/7.x/avataaars/svg?seed={i}",
                    title=f"Plant {i}",
                    description=f"Beautiful plant within {km:.1f}km of your location",
                    price=float(self._rng.randint(100, 1099)),
                    currency=self._settings.currency,
                    image=PLACEHOLDER_IMAGE,
                    conditions="Moderate sunlight, regular watering",
                    accepted_payment_methods=("COD", "Pickup"),
                    location=location,
                )
            )
        return out

    async def fetch_communities(self, reference: Coordinate) -> list[Community]:
        out: list[Community] = []
        for i in range(self._settings.community_count):
            location = nearby_point(reference, radius_km=self._settings.radius_km, rng=self._rng)
            km = distance_km(reference, location)
            out.append(
                Community(
                    id=f"comm_{i}",
                    creator_id=f"user_{i}",
                    name=f"Local Plant Community {i}",
                    kind="Permanent" if i % 2 == 0 else "Temporary",
                    purpose=f"Supporting local plant enthusiasts within {km:.1f}km",
                    description=(
                        "A community for plant lovers in your area. "
                        "Share tips, trade plants, and meet fellow enthusiasts!"
                    ),
                    members=(f"user_{i}",),
                    location=location,
                )
            )
        return out

    async def fetch_orders(self, user_id: str) -> list[Order]:
        return []

    async def submit_listing(self, listing: Listing, owner: UserProfile) -> Listing:
        return listing

    async def submit_community(self, community: Community, creator: UserProfile) -> Community:
        return community

    async def submit_community_action(self, community_id: str, user_id: str, action: CommunityAction) -> None:
        return None

    async def submit_order(self, order: Order) -> Order:
        return order
