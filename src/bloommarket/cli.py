"""
BloomMarket CLI entrypoint.

Intended for quick local demos without a frontend. `nearby` runs a full session
(sign-in, location from `--lat/--lon` or the cached last-known location, catalog refresh)
and prints the ranked view. The session cache lives under `session_cache.dir`, so a later
run without coordinates reuses the last location.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from bloommarket.catalog.listing_catalog import SessionState
from bloommarket.config.settings import get_settings
from bloommarket.core.logging import configure_logging
from bloommarket.core.proximity import trim
from bloommarket.domain.models import Coordinate, UserProfile, format_address
from bloommarket.ingestion.factory import build_data_service
from bloommarket.location.watcher import StaticLocationSource
from bloommarket.session.app_state import AppSession, build_session_cache

CLI_USER_ID = "cli"


async def _nearby(args: argparse.Namespace) -> int:
    settings = get_settings()
    identity = UserProfile(user_id=CLI_USER_ID, display_name="CLI")
    source = None
    if args.lat is not None:
        lat, lon = float(args.lat), float(args.lon)
        source = StaticLocationSource(latitude=lat, longitude=lon)
        identity = identity.model_copy(
            update={"location": Coordinate(latitude=lat, longitude=lon, address=format_address(lat, lon))}
        )

    session = AppSession(
        settings,
        data_service=build_data_service(settings),
        location_source=source,
        session_cache=build_session_cache(settings),
    )
    async with session:
        await session.sign_in(identity)
        if session.state is not SessionState.READY:
            code = session.last_location_error.value if session.last_location_error else "unknown"
            print(f"No location available ({code}). Pass --lat/--lon once to remember one.")
            return 1

        catalog = session.catalog
        ranked = catalog.listings if args.kind == "listings" else catalog.communities
        ranked = trim(ranked, max_distance_km=args.max_km, limit=args.limit)

        if args.json:
            payload = {
                "reference": catalog.reference.to_wire() if catalog.reference else None,
                args.kind: [{**r.item.to_wire(), "distanceKm": round(r.distance_km, 3)} for r in ranked],
                "notices": [n.message for n in catalog.notices],
            }
            print(json.dumps(payload, ensure_ascii=False, indent=2))
            return 0

        print(f"Near {catalog.reference.address}:")
        for i, r in enumerate(ranked, start=1):
            name = r.item.title if args.kind == "listings" else r.item.name
            print(f"{i:>2}. {name}  {r.distance_km:.2f} km")
        for notice in catalog.notices:
            print(f"  ! {notice.message}")
    return 0


def _cmd_nearby(args: argparse.Namespace) -> int:
    return asyncio.run(_nearby(args))


def _check_coordinates(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    if args.lat is not None and not (-90 <= args.lat <= 90 and -180 <= args.lon <= 180):
        parser.error("--lat must be within [-90, 90] and --lon within [-180, 180]")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the BloomMarket CLI."""
    parser = argparse.ArgumentParser(prog="bloommarket")
    sub = parser.add_subparsers(dest="command", required=True)

    near = sub.add_parser("nearby", help="Rank listings or communities around a coordinate.")
    near.add_argument("--lat", type=float, default=None, help="Omit both to reuse the cached location")
    near.add_argument("--lon", type=float, default=None)
    near.add_argument("--kind", choices=["listings", "communities"], default="listings")
    near.add_argument("--max-km", dest="max_km", type=float, default=None)
    near.add_argument("--limit", type=int, default=None)
    near.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    near.set_defaults(func=_cmd_nearby)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m bloommarket.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "nearby":
        _check_coordinates(parser, args)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
