"""
Error taxonomy.

Every error carries a stable `code` so the API/CLI can report it without string matching.

Propagation rules:
- Location errors are reported to the session owner and never abort the session.
- `FetchFailed` is recoverable: the catalog keeps its last good state.
- Validation errors (`ListingNotFound`, `AddressRequired`, ...) are raised synchronously
  by catalog mutations and leave state untouched.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class BloomMarketError(Exception):
    """Base class for all bloommarket errors."""

    code = "BLOOMMARKET_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class InvalidCoordinate(BloomMarketError, ValueError):
    """Latitude/longitude outside [-90, 90] / [-180, 180] (or not finite)."""

    code = "INVALID_COORDINATE"


class LocationErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class LocationError(BloomMarketError):
    """A location fix could not be obtained."""

    code = "LOCATION_ERROR"
    kind: LocationErrorKind = LocationErrorKind.POSITION_UNAVAILABLE

    @staticmethod
    def for_kind(kind: LocationErrorKind, message: str | None = None) -> "LocationError":
        cls = _LOCATION_ERRORS_BY_KIND[LocationErrorKind(kind)]
        return cls(message or _LOCATION_MESSAGES[cls.kind])


class LocationPermissionDenied(LocationError):
    code = "LOCATION_PERMISSION_DENIED"
    kind = LocationErrorKind.PERMISSION_DENIED


class LocationUnavailable(LocationError):
    code = "LOCATION_UNAVAILABLE"
    kind = LocationErrorKind.POSITION_UNAVAILABLE


class LocationTimeout(LocationError):
    code = "LOCATION_TIMEOUT"
    kind = LocationErrorKind.TIMEOUT


class LocationUnsupported(LocationError):
    code = "LOCATION_UNSUPPORTED"
    kind = LocationErrorKind.UNSUPPORTED


_LOCATION_ERRORS_BY_KIND: dict[LocationErrorKind, type[LocationError]] = {
    LocationErrorKind.PERMISSION_DENIED: LocationPermissionDenied,
    LocationErrorKind.POSITION_UNAVAILABLE: LocationUnavailable,
    LocationErrorKind.TIMEOUT: LocationTimeout,
    LocationErrorKind.UNSUPPORTED: LocationUnsupported,
}

_LOCATION_MESSAGES: dict[LocationErrorKind, str] = {
    LocationErrorKind.PERMISSION_DENIED: "Please enable location permissions to see nearby items.",
    LocationErrorKind.POSITION_UNAVAILABLE: "Location information is unavailable. Please try again.",
    LocationErrorKind.TIMEOUT: "Location request timed out. Please check your connection.",
    LocationErrorKind.UNSUPPORTED: "No location source available. Some features may be limited.",
}


class FetchFailed(BloomMarketError):
    """Remote data service unreachable or answered non-2xx."""

    code = "FETCH_FAILED"

    def __init__(self, message: str, *, status_code: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class ListingNotFound(BloomMarketError):
    code = "LISTING_NOT_FOUND"


class CommunityNotFound(BloomMarketError):
    code = "COMMUNITY_NOT_FOUND"


class AddressRequired(BloomMarketError):
    code = "ADDRESS_REQUIRED"


class SelfPurchaseNotAllowed(BloomMarketError):
    code = "SELF_PURCHASE_NOT_ALLOWED"


class PaymentMethodNotAccepted(BloomMarketError):
    code = "PAYMENT_METHOD_NOT_ACCEPTED"


class LocationRequired(BloomMarketError):
    code = "LOCATION_REQUIRED"


class NotSignedIn(BloomMarketError):
    """A session mutation was attempted without a signed-in user."""

    code = "NOT_SIGNED_IN"
