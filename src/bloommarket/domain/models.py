"""
Domain models (Pydantic).

These types are the contract between layers:
- location feed (`Coordinate`, `UserLocationState`)
- marketplace records (`Listing`, `Community`, `Order`)
- identity/session (`UserProfile`)
- caller input for creation (`ListingDraft`, `CommunityDraft`)

All records are frozen: the catalog replaces a record (via `model_copy`) instead of
mutating it, so ranked views handed to presentation never change underneath it.

Wire format: fields serialize with camelCase aliases (`ownerId`, `createdAt`) to match
the marketplace API; either spelling is accepted on input.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bloommarket.core.time import ensure_utc, utc_now

PaymentMethod = Literal["COD", "Pickup"]
CommunityKind = Literal["Permanent", "Temporary"]
OrderStatus = Literal["pending", "completed", "cancelled"]


def new_id(prefix: str) -> str:
    """Short random identifier, e.g. `plant_3f9a2c1`."""
    return f"{prefix}_{uuid.uuid4().hex[:7]}"


def format_address(latitude: float, longitude: float) -> str:
    """Default display label for a coordinate: `"lat, lon"` with 4 decimals."""
    return f"{latitude:.4f}, {longitude:.4f}"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Coordinate(_WireModel):
    """A geographic point in decimal degrees. `address` is a display label only."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str | None = None


class UserLocationState(_WireModel):
    """Last resolved coordinate for a session (None until the first fix)."""

    current: Coordinate | None = None
    last_updated_at: datetime | None = None


class UserProfile(_WireModel):
    """Identity provider record plus the last known location (persisted in the session cache)."""

    user_id: str
    display_name: str
    email: str = ""
    photo_ref: str = ""
    location: Coordinate | None = None


class ListingDraft(_WireModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    currency: str = "INR"
    image: str = ""
    conditions: str = ""
    accepted_payment_methods: tuple[PaymentMethod, ...] = ("COD", "Pickup")

    @field_validator("accepted_payment_methods")
    @classmethod
    def _unique_methods(cls, methods: tuple[str, ...]) -> tuple[str, ...]:
        if not methods:
            raise ValueError("at least one payment method is required")
        return tuple(dict.fromkeys(methods))


class Listing(ListingDraft):
    """A plant offered for sale by its owner."""

    id: str = Field(default_factory=lambda: new_id("plant"))
    owner_id: str
    owner_name: str = ""
    owner_photo_ref: str = ""
    location: Coordinate
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class CommunityDraft(_WireModel):
    name: str = Field(..., min_length=1)
    kind: CommunityKind = "Permanent"
    purpose: str = ""
    description: str = ""


class Community(CommunityDraft):
    """A local group; `members` holds each user id at most once."""

    id: str = Field(default_factory=lambda: new_id("comm"))
    creator_id: str
    members: tuple[str, ...] = ()
    location: Coordinate
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("members")
    @classmethod
    def _unique_members(cls, members: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(members))

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members


class Order(_WireModel):
    """A buyer's request for a listing; status transitions happen elsewhere."""

    id: str = Field(default_factory=lambda: new_id("order"))
    buyer_id: str
    listing_id: str
    listing_title: str = ""
    listing_image: str = ""
    seller_id: str
    seller_name: str = ""
    price: float = Field(..., ge=0)
    currency: str = "INR"
    payment_method: PaymentMethod
    status: OrderStatus = "pending"
    delivery_address: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)
