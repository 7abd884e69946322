"""
Backing data service contract.

The catalog only talks to this protocol; `MarketApiClient` (remote HTTP) and
`MockMarketData` (local generator) both implement it, and tests inject stubs.
"""

from __future__ import annotations

from typing import Literal, Protocol

from bloommarket.domain.models import Community, Coordinate, Listing, Order, UserProfile

CommunityAction = Literal["join", "leave"]


class MarketDataService(Protocol):
    async def fetch_listings(self, reference: Coordinate) -> list[Listing]: ...

    async def fetch_communities(self, reference: Coordinate) -> list[Community]: ...

    async def fetch_orders(self, user_id: str) -> list[Order]: ...

    async def submit_listing(self, listing: Listing, owner: UserProfile) -> Listing: ...

    async def submit_community(self, community: Community, creator: UserProfile) -> Community: ...

    async def submit_community_action(self, community_id: str, user_id: str, action: CommunityAction) -> None: ...

    async def submit_order(self, order: Order) -> Order: ...
