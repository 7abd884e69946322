from __future__ import annotations

# The catalog is the session's single owner of listings, communities and orders.
# Data flow:
# - location update -> decide re-fetch vs re-rank (material change threshold)
# - re-fetch -> data service -> proximity ranking -> stored ranked views
# - mutations -> local state first, then a best-effort remote write
#
# Concurrency: everything runs on one event loop. Refreshes may overlap, so each one
# takes a sequence number at start and only the latest-started refresh may store.

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, TypeVar

from bloommarket.core.errors import (
    AddressRequired,
    CommunityNotFound,
    FetchFailed,
    ListingNotFound,
    LocationRequired,
    NotSignedIn,
    PaymentMethodNotAccepted,
    SelfPurchaseNotAllowed,
)
from bloommarket.core.geo import distance_km
from bloommarket.core.proximity import Located, Ranked, rank
from bloommarket.core.time import utc_now
from bloommarket.domain.models import (
    Community,
    CommunityDraft,
    Coordinate,
    Listing,
    ListingDraft,
    Order,
    PaymentMethod,
    UserLocationState,
    UserProfile,
)
from bloommarket.ingestion.base import MarketDataService

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Located)

MAX_NOTICES = 50


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_LOCATION = "awaiting_location"
    READY = "ready"


@dataclass(frozen=True)
class Notice:
    """A recoverable problem worth showing to the user (e.g. 'showing last known listings')."""

    code: str
    message: str
    created_at: datetime = field(default_factory=utc_now)


def _rerank(reference: Coordinate | None, ranked: list[Ranked[T]]) -> list[Ranked[T]]:
    items = [r.item for r in ranked]
    if reference is None:
        return [Ranked(item=i, distance_km=float("nan")) for i in items]
    return rank(reference, items)


def _replace(ranked: list[Ranked[T]], match: Callable[[T], bool], new: T) -> tuple[list[Ranked[T]], bool]:
    out: list[Ranked[T]] = []
    found = False
    for r in ranked:
        if not found and match(r.item):
            out.append(Ranked(item=new, distance_km=r.distance_km))
            found = True
        else:
            out.append(r)
    return out, found


class ListingCatalog:
    """In-memory, location-ranked view over listings, communities and orders."""

    def __init__(
        self,
        data_service: MarketDataService,
        *,
        material_change_km: float = 0.5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._data = data_service
        self._material_change_km = float(material_change_km)
        self._clock = clock

        self._state = SessionState.UNAUTHENTICATED
        self._user: UserProfile | None = None
        self._location = UserLocationState()
        self._fetch_reference: Coordinate | None = None
        self._refresh_seq = 0

        self._listings: list[Ranked[Listing]] = []
        self._communities: list[Ranked[Community]] = []
        self._orders: list[Order] = []
        self._notices: deque[Notice] = deque(maxlen=MAX_NOTICES)

    # ---- read views -------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> UserProfile | None:
        return self._user

    @property
    def reference(self) -> Coordinate | None:
        return self._location.current

    @property
    def location_state(self) -> UserLocationState:
        return self._location

    @property
    def listings(self) -> list[Ranked[Listing]]:
        return list(self._listings)

    @property
    def communities(self) -> list[Ranked[Community]]:
        return list(self._communities)

    @property
    def orders(self) -> list[Order]:
        return list(self._orders)

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    def find_listing(self, listing_id: str) -> Listing | None:
        return next((r.item for r in self._listings if r.item.id == listing_id), None)

    def find_community(self, community_id: str) -> Community | None:
        return next((r.item for r in self._communities if r.item.id == community_id), None)

    def _notify(self, code: str, message: str) -> None:
        self._notices.append(Notice(code=code, message=message, created_at=self._clock()))

    def _require_user(self, action: str) -> UserProfile:
        if self._user is None or self._state is SessionState.UNAUTHENTICATED:
            raise NotSignedIn(f"Sign in to {action}.")
        return self._user

    def _set_reference(self, reference: Coordinate) -> None:
        self._location = UserLocationState(current=reference, last_updated_at=self._clock())
        self._state = SessionState.READY

    def _clear(self) -> None:
        self._listings = []
        self._communities = []
        self._orders = []
        self._fetch_reference = None
        self._location = UserLocationState()

    # ---- session lifecycle ------------------------------------------------------

    def sign_in(self, user: UserProfile) -> None:
        """Unauthenticated -> AwaitingLocation (a new user always starts empty)."""
        self._refresh_seq += 1
        self._clear()
        self._notices.clear()
        self._user = user
        self._state = SessionState.AWAITING_LOCATION
        logger.info("Catalog session started for %s", user.user_id)

    def sign_out(self) -> None:
        """Any -> Unauthenticated. In-flight refreshes are invalidated."""
        self._refresh_seq += 1
        self._clear()
        self._notices.clear()
        self._user = None
        self._state = SessionState.UNAUTHENTICATED

    def needs_fetch(self, reference: Coordinate) -> bool:
        """True when there is no fetched data yet or `reference` moved materially since the last fetch."""
        if self._fetch_reference is None:
            return True
        return distance_km(self._fetch_reference, reference) > self._material_change_km

    async def update_location(self, reference: Coordinate) -> None:
        """Apply a new reference coordinate: always re-rank, re-fetch only on material change."""
        if self._state is SessionState.UNAUTHENTICATED:
            logger.debug("Ignoring location update while signed out")
            return

        self._set_reference(reference)

        if self.needs_fetch(reference):
            await self.refresh(reference)
            return

        self._listings = _rerank(reference, self._listings)
        self._communities = _rerank(reference, self._communities)

    async def refresh(self, reference: Coordinate | None = None) -> bool:
        """Fetch listings + communities around `reference` and store them ranked.

        Returns True when this refresh's result was stored. A refresh is discarded when a
        newer one started (or the session changed) while it was in flight; on `FetchFailed`
        the last good collections stay in place and a notice is recorded.

        While awaiting a location, an explicit `reference` counts as the first coordinate:
        it becomes the session reference (-> Ready) before fetching.
        """
        reference = reference or self.reference
        if reference is None:
            raise LocationRequired("A location is needed to load nearby listings.")
        if self._state is SessionState.UNAUTHENTICATED:
            logger.debug("Skipping refresh while signed out")
            return False
        if self.reference is None:
            self._set_reference(reference)

        self._refresh_seq += 1
        seq = self._refresh_seq

        try:
            listings, communities = await asyncio.gather(
                self._data.fetch_listings(reference),
                self._data.fetch_communities(reference),
            )
        except FetchFailed as exc:
            if seq != self._refresh_seq:
                logger.debug("Dropping failed refresh #%d (superseded by #%d)", seq, self._refresh_seq)
                return False
            logger.warning("Refresh #%d failed, keeping last known listings: %s", seq, exc.message)
            self._notify(exc.code, "Couldn't refresh nearby listings; showing the last known results.")
            self._listings = _rerank(self.reference, self._listings)
            self._communities = _rerank(self.reference, self._communities)
            return False

        if seq != self._refresh_seq:
            logger.debug("Dropping stale refresh #%d (superseded by #%d)", seq, self._refresh_seq)
            return False

        # Rank against the newest reference, which may have moved slightly during the fetch.
        current = self.reference or reference
        self._listings = rank(current, listings)
        self._communities = rank(current, communities)
        self._fetch_reference = reference
        logger.info(
            "Refresh #%d stored %d listings, %d communities", seq, len(self._listings), len(self._communities)
        )
        return True

    async def load_orders(self, user_id: str) -> list[Order]:
        """Replace the order collection with the service's view (kept as-is on failure)."""
        try:
            orders = await self._data.fetch_orders(user_id)
        except FetchFailed as exc:
            logger.warning("Loading orders for %s failed: %s", user_id, exc.message)
            self._notify(exc.code, "Couldn't load your orders.")
            return self.orders
        if self._user is not None and self._user.user_id == user_id:
            self._orders = list(orders)
        return list(orders)

    # ---- mutations (local first, then best-effort remote write) -----------------

    async def create_listing(self, draft: ListingDraft, owner: UserProfile, owner_location: Coordinate | None) -> Listing:
        self._require_user("add a plant")
        if owner_location is None:
            raise LocationRequired("Unable to add plant. Make sure location services are enabled.")

        listing = Listing(
            **draft.model_dump(),
            owner_id=owner.user_id,
            owner_name=owner.display_name,
            owner_photo_ref=owner.photo_ref,
            location=owner_location,
            created_at=self._clock(),
        )
        distance = distance_km(self.reference, listing.location) if self.reference else float("nan")
        self._listings = [Ranked(item=listing, distance_km=distance), *self._listings]

        try:
            stored = await self._data.submit_listing(listing, owner)
        except FetchFailed as exc:
            logger.warning("Submitting listing %s failed; keeping local record: %s", listing.id, exc.message)
            self._notify(exc.code, "Your listing is saved on this device but couldn't be sent yet.")
            return listing

        self._listings, _ = _replace(self._listings, lambda item: item.id == listing.id, stored)
        return stored

    async def create_community(
        self, draft: CommunityDraft, creator: UserProfile, creator_location: Coordinate | None
    ) -> Community:
        self._require_user("create a community")
        if creator_location is None:
            raise LocationRequired("Unable to create community. Make sure location services are enabled.")

        community = Community(
            **draft.model_dump(),
            creator_id=creator.user_id,
            members=(creator.user_id,),
            location=creator_location,
            created_at=self._clock(),
        )
        distance = distance_km(self.reference, community.location) if self.reference else float("nan")
        self._communities = [Ranked(item=community, distance_km=distance), *self._communities]

        try:
            stored = await self._data.submit_community(community, creator)
        except FetchFailed as exc:
            logger.warning("Submitting community %s failed; keeping local record: %s", community.id, exc.message)
            self._notify(exc.code, "Your community is saved on this device but couldn't be sent yet.")
            return community

        self._communities, _ = _replace(self._communities, lambda item: item.id == community.id, stored)
        return stored

    def _require_community(self, community_id: str) -> Community:
        community = self.find_community(community_id)
        if community is None:
            raise CommunityNotFound(f"Community '{community_id}' not found")
        return community

    async def _submit_membership(self, community_id: str, user_id: str, action: str) -> None:
        try:
            await self._data.submit_community_action(community_id, user_id, action)
        except FetchFailed as exc:
            logger.warning("Community %s for %s on %s failed: %s", action, user_id, community_id, exc.message)
            self._notify(exc.code, f"Couldn't sync your {action} with the server yet.")

    async def join_community(self, community_id: str, user_id: str) -> Community:
        """Add `user_id` to the community's members; no-op when already a member."""
        self._require_user("join a community")
        community = self._require_community(community_id)
        if community.is_member(user_id):
            return community

        updated = community.model_copy(update={"members": (*community.members, user_id)})
        self._communities, _ = _replace(self._communities, lambda item: item.id == community_id, updated)
        await self._submit_membership(community_id, user_id, "join")
        return updated

    async def leave_community(self, community_id: str, user_id: str) -> Community:
        """Remove `user_id` from the community's members; no-op when not a member."""
        self._require_user("leave a community")
        community = self._require_community(community_id)
        if not community.is_member(user_id):
            return community

        updated = community.model_copy(update={"members": tuple(m for m in community.members if m != user_id)})
        self._communities, _ = _replace(self._communities, lambda item: item.id == community_id, updated)
        await self._submit_membership(community_id, user_id, "leave")
        return updated

    async def place_order(
        self,
        listing_id: str,
        payment_method: PaymentMethod,
        address: str | None = None,
        *,
        buyer_id: str | None = None,
    ) -> Order:
        """Create a pending order for `listing_id` on behalf of `buyer_id` (default: the signed-in user).

        Raises:
            NotSignedIn: No session user.
            ListingNotFound: Unknown listing id.
            SelfPurchaseNotAllowed: The buyer owns the listing.
            PaymentMethodNotAccepted: The listing doesn't advertise `payment_method`.
            AddressRequired: Cash on delivery without a delivery address.
        """
        session_user = self._require_user("place an order")
        buyer_id = buyer_id or session_user.user_id
        listing = self.find_listing(listing_id)
        if listing is None:
            raise ListingNotFound(f"Plant '{listing_id}' not found")
        if listing.owner_id == buyer_id:
            raise SelfPurchaseNotAllowed("You can't order your own listing")
        if payment_method not in listing.accepted_payment_methods:
            raise PaymentMethodNotAccepted(
                f"'{payment_method}' is not accepted for this listing",
                details={"accepted": list(listing.accepted_payment_methods)},
            )
        delivery_address = (address or "").strip() or None
        if payment_method == "COD" and delivery_address is None:
            raise AddressRequired("A delivery address is required for cash on delivery")

        order = Order(
            buyer_id=buyer_id,
            listing_id=listing.id,
            listing_title=listing.title,
            listing_image=listing.image,
            seller_id=listing.owner_id,
            seller_name=listing.owner_name,
            price=listing.price,
            currency=listing.currency,
            payment_method=payment_method,
            status="pending",
            delivery_address=delivery_address,
            created_at=self._clock(),
        )
        self._orders = [order, *self._orders]

        try:
            stored = await self._data.submit_order(order)
        except FetchFailed as exc:
            logger.warning("Submitting order %s failed; keeping local record: %s", order.id, exc.message)
            self._notify(exc.code, "Your order is saved on this device but couldn't be sent yet.")
            return order

        self._orders = [stored if o.id == order.id else o for o in self._orders]
        return stored
