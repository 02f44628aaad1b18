"""CLI entrypoint."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv as _load_dotenv

from studyspots import config
from studyspots.cache import SqliteKeyValueStore, TtlCache
from studyspots.channel import (
    CHECK_IN_REQUESTED,
    VIEW_REVIEWS_REQUESTED,
    CheckInIntent,
    MessageChannel,
    ViewReviewsIntent,
)
from studyspots.edit_policy import EditNotAllowedError, can_edit
from studyspots.filters import NOISE_FILTERS, WIFI_FILTERS, FilterState
from studyspots.geolocation import GeolocationSource, IpPositionProvider
from studyspots.http import HttpClient
from studyspots.models import Coordinate, NoiseLevel, WifiSpeed, place_key
from studyspots.places_client import PlaceCache
from studyspots.rating_store import RatingsRepository, RatingStoreError, SqliteRatingStore
from studyspots.reconciler import ViewModelReconciler
from studyspots.reporting import ensure_dir, render_summary, write_markers_csv, write_markers_geojson
from studyspots.session import MapSession
from studyspots.surface import InMemorySurface

logger = logging.getLogger("studyspots")


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def current_user_id() -> str:
    user = (os.environ.get("STUDYSPOTS_USER") or "").strip()
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "anonymous"


def normalize_place_key(value: str) -> str:
    value = value.strip()
    if value.startswith("node/"):
        return value
    return place_key(int(value))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find quiet cafes, libraries and co-working spaces with good WiFi"
    )
    parser.add_argument("--preflight", action="store_true", help="Run offline checks only")
    location = parser.add_mutually_exclusive_group()
    location.add_argument("--locate", action="store_true", help="Locate via IP geolocation")
    location.add_argument("--at", nargs=2, type=float, metavar=("LAT", "LON"), help="Manual position")
    parser.add_argument(
        "--radius",
        type=int,
        choices=config.RADIUS_OPTIONS,
        default=config.DEFAULT_RADIUS_M,
        help="Search radius in meters",
    )
    parser.add_argument("--noise", choices=NOISE_FILTERS, default="all")
    parser.add_argument("--wifi", choices=WIFI_FILTERS, default="all")
    parser.add_argument("--search", default="", help="Search places by name or type")
    parser.add_argument("--check-in", metavar="PLACE", help="Rate a place (node id or node/<id>)")
    parser.add_argument("--rate-noise", choices=[n.value for n in NoiseLevel])
    parser.add_argument("--rate-wifi", choices=[w.value for w in WifiSpeed])
    parser.add_argument("--note", default="", help="Optional description for --check-in")
    parser.add_argument("--reviews", metavar="PLACE", help="List all reviews of a place")
    parser.add_argument("--set-name", metavar="NAME", help="Set your profile name")
    parser.add_argument("--out", metavar="DIR", help="Write markers.geojson and markers.csv here")
    parser.add_argument("--cache-path", default=config.CACHE_DB_PATH)
    parser.add_argument("--ratings-path", default=config.RATINGS_DB_PATH)
    args = parser.parse_args(argv)
    if args.check_in and not (args.rate_noise and args.rate_wifi):
        parser.error("--check-in requires --rate-noise and --rate-wifi")
    return args


def run_preflight(cache_path: str, ratings_path: str) -> int:
    ok = True
    print(f"Feed endpoint: {config.OVERPASS_URL}")
    print(f"Place cache TTL: {config.PLACE_CACHE_TTL_SECONDS // 3600} h")
    lat, lon = config.DEFAULT_LOCATION
    print(f"Fallback location: {lat:.5f}, {lon:.5f}")
    for label, path in (("Place cache", cache_path), ("Ratings store", ratings_path)):
        parent = Path(path).expanduser().resolve().parent
        writable = parent.exists() and os.access(parent, os.W_OK)
        print(f"{label}: {path} ({'OK' if writable else 'NOT WRITABLE'})")
        ok = ok and writable
    print(f"User: {current_user_id()}")
    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


async def run_session(args: argparse.Namespace) -> int:
    channel = MessageChannel()
    surface = InMemorySurface(channel)
    http_client = HttpClient()
    kv_store = SqliteKeyValueStore(args.cache_path)
    store = SqliteRatingStore(args.ratings_path, user_id=current_user_id())
    try:
        place_cache = PlaceCache(http_client, TtlCache(kv_store, config.PLACE_CACHE_TTL_SECONDS))
        ratings = RatingsRepository(store)
        provider = IpPositionProvider(http_client) if args.locate else None
        geolocation = GeolocationSource(provider=provider, fallback=Coordinate(*config.DEFAULT_LOCATION))
        session = MapSession(
            place_cache,
            ratings,
            geolocation,
            ViewModelReconciler(surface),
            FilterState(noise_filter=args.noise, wifi_filter=args.wifi, radius=args.radius),
        )

        if args.set_name:
            await ratings.set_profile(args.set_name)
        profile = await ratings.profile()
        if profile is not None:
            print(f"Signed in as {profile.name}")

        if args.at:
            session.geolocation.set_manual(Coordinate(*args.at))
        elif args.locate:
            await session.locate_me()
            if session.geolocation.locate_failed:
                print("Could not determine your location; using the last known one", file=sys.stderr)

        await session.refresh()
        if session.state.has_error:
            logger.info("Retrying after load error")
            await session.retry()
        if session.state.places_error:
            print(f"Could not load places: {session.state.places_error}", file=sys.stderr)
            return 1
        if session.state.ratings_error:
            print(f"Ratings unavailable: {session.state.ratings_error}", file=sys.stderr)

        if args.check_in:
            code = await _check_in(session, surface, channel, args)
            if code:
                return code

        if args.reviews:
            _print_reviews(session, surface, channel, normalize_place_key(args.reviews))

        if args.search:
            results = session.set_search_query(args.search)
            print(f"Search '{args.search}': {len(results)} result(s)")
            for result in results:
                print(f"- {result.name} ({result.category.replace('_', ' ')}) node/{result.id}")
            if results:
                session.select_search_result(results[0])

        print(render_summary(session.markers, place_cache.metrics, len(session.places or [])))

        if args.out:
            ensure_dir(args.out)
            write_markers_geojson(os.path.join(args.out, "markers.geojson"), session.markers)
            write_markers_csv(os.path.join(args.out, "markers.csv"), session.markers)
            print(f"Wrote markers to {args.out}")
        return 0
    finally:
        kv_store.close()
        store.close()


async def _check_in(session: MapSession, surface: InMemorySurface, channel: MessageChannel, args) -> int:
    key = normalize_place_key(args.check_in)
    marker = next((m for m in session.markers if m.place_key == key), None)
    if marker is None:
        print(f"{key} is not on the map; adjust the radius or filters", file=sys.stderr)
        return 1

    requested: List[CheckInIntent] = []
    unsubscribe = channel.subscribe(CHECK_IN_REQUESTED, requested.append)
    try:
        surface.click_check_in(marker.place_id)
    finally:
        unsubscribe()
    intent = requested[0]

    existing = await session.existing_rating(intent.place_key)
    if not can_edit(existing):
        print("You have already edited your rating for this place", file=sys.stderr)
        return 1
    try:
        kind = await session.submit_rating(
            intent,
            NoiseLevel(args.rate_noise),
            WifiSpeed(args.rate_wifi),
            args.note,
        )
    except (EditNotAllowedError, RatingStoreError) as exc:
        print(f"Rating failed: {exc}", file=sys.stderr)
        return 1
    print(f"Rating {kind.value}d for {intent.name}")
    return 0


def _print_reviews(session: MapSession, surface: InMemorySurface, channel: MessageChannel, key: str) -> None:
    requested: List[ViewReviewsIntent] = []
    unsubscribe = channel.subscribe(VIEW_REVIEWS_REQUESTED, requested.append)
    try:
        marker = next((m for m in session.markers if m.place_key == key), None)
        if marker is not None:
            surface.click_view_reviews(marker.place_id)
    finally:
        unsubscribe()
    if not requested:
        print(f"No reviews yet for {key}")
        return
    intent = requested[0]
    print(f"Reviews for {intent.name}:")
    for rating in session.reviews_for(intent.place_key):
        edited = " (edited)" if rating.edit_count > 0 else ""
        print(f"- {rating.noise_level} / {rating.wifi_speed} {rating.created_at[:10]}{edited}")
        if rating.description:
            print(f'  "{rating.description}"')


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    config.load_app_config()
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.preflight:
        return run_preflight(args.cache_path, args.ratings_path)

    try:
        return asyncio.run(run_session(args))
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
