"""
Marketplace API client (remote data service).

This module is responsible only for:
- calling the marketplace REST endpoints with an optional bearer token,
- validating responses into domain models.

It does not decide fallbacks; callers (`ListingCatalog`) treat `FetchFailed` as
recoverable and keep their last good state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from pydantic import TypeAdapter, ValidationError

from bloommarket.config.settings import Settings
from bloommarket.core.errors import FetchFailed
from bloommarket.core.http import build_headers, request_json
from bloommarket.domain.models import Community, Coordinate, Listing, Order, UserProfile
from bloommarket.ingestion.base import CommunityAction

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]

_LISTINGS = TypeAdapter(list[Listing])
_COMMUNITIES = TypeAdapter(list[Community])
_ORDERS = TypeAdapter(list[Order])


def _reference_payload(reference: Coordinate) -> dict[str, float]:
    return {"latitude": reference.latitude, "longitude": reference.longitude}


def _field(payload: Any, name: str, url: str) -> Any:
    if not isinstance(payload, dict) or name not in payload:
        raise FetchFailed(f"{url}: response is missing '{name}'")
    return payload[name]


class MarketApiClient:
    """Async client for the marketplace backend (`remote.base_url`)."""

    def __init__(
        self,
        settings: Settings,
        *,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = settings.remote.base_url.rstrip("/")
        self._timeout = settings.app.http_timeout_seconds
        self._token_provider = token_provider
        self._transport = transport

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            yield client

    async def _headers(self, *, authenticated: bool) -> dict[str, str]:
        token = None
        if authenticated and self._token_provider is not None:
            token = await self._token_provider()
        return build_headers(token=token)

    async def _call(self, method: str, path: str, *, body: Any | None = None, authenticated: bool = True) -> Any:
        url = f"{self._base_url}{path}"
        headers = await self._headers(authenticated=authenticated)
        async with self._client() as client:
            return await request_json(client, method, url, json_body=body, headers=headers)

    @staticmethod
    def _validate(adapter: TypeAdapter, value: Any, what: str) -> Any:
        try:
            return adapter.validate_python(value)
        except ValidationError as exc:
            raise FetchFailed(f"Malformed {what} payload: {exc.error_count()} error(s)") from exc

    async def fetch_listings(self, reference: Coordinate) -> list[Listing]:
        logger.info("Fetching listings near %.4f,%.4f", reference.latitude, reference.longitude)
        data = await self._call("POST", "/plants", body={"userLocation": _reference_payload(reference)}, authenticated=False)
        return self._validate(_LISTINGS, _field(data, "plants", "/plants"), "plants")

    async def fetch_communities(self, reference: Coordinate) -> list[Community]:
        logger.info("Fetching communities near %.4f,%.4f", reference.latitude, reference.longitude)
        data = await self._call(
            "POST", "/communities", body={"userLocation": _reference_payload(reference)}, authenticated=False
        )
        return self._validate(_COMMUNITIES, _field(data, "communities", "/communities"), "communities")

    async def fetch_orders(self, user_id: str) -> list[Order]:
        path = f"/orders/user/{user_id}"
        data = await self._call("GET", path)
        return self._validate(_ORDERS, _field(data, "orders", path), "orders")

    async def submit_listing(self, listing: Listing, owner: UserProfile) -> Listing:
        data = await self._call("POST", "/plants", body={"plantData": listing.to_wire(), "user": owner.to_wire()})
        return self._validate(TypeAdapter(Listing), _field(data, "plant", "/plants"), "plant")

    async def submit_community(self, community: Community, creator: UserProfile) -> Community:
        data = await self._call(
            "POST", "/communities", body={"communityData": community.to_wire(), "user": creator.to_wire()}
        )
        return self._validate(TypeAdapter(Community), _field(data, "community", "/communities"), "community")

    async def submit_community_action(self, community_id: str, user_id: str, action: CommunityAction) -> None:
        if action not in ("join", "leave"):
            raise ValueError(f"Unknown community action '{action}'")
        await self._call("POST", f"/communities/{community_id}/{action}", body={"userId": user_id})

    async def submit_order(self, order: Order) -> Order:
        data = await self._call("POST", "/orders", body={"orderData": order.to_wire()})
        return self._validate(TypeAdapter(Order), _field(data, "order", "/orders"), "order")
