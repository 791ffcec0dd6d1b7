#!/usr/bin/env python3
"""Passive feed probe for live vehicle snapshot observation.

This script uses the transitmap session to:
1) open the socket.io feed of one city,
2) fetch its stops (and bike stations with --bikes),
3) print every ``positions`` snapshot with its gap to the previous one,
4) optionally print what a given viewport would show.

Use this to check snapshot cadence and reconnect behaviour against a live API.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from transitmap import CityMapSession, CityProfile, TransitConfig  # noqa: E402
from transitmap.connection import FeedLifecycle  # noqa: E402
from transitmap.models import Bounds  # noqa: E402
from transitmap.notifications import Notification  # noqa: E402
from transitmap.state.events import EntityClass, SnapshotEvent  # noqa: E402


@dataclass
class ProbeStats:
    started_at: float
    total_snapshots: int = 0
    reconnects: int = 0
    first_snapshot_at: float | None = None
    last_snapshot_at: float | None = None
    last_count: int = 0

    def on_snapshot(self, now: float, count: int) -> float | None:
        previous = self.last_snapshot_at
        self.total_snapshots += 1
        if self.first_snapshot_at is None:
            self.first_snapshot_at = now
        self.last_snapshot_at = now
        self.last_count = count
        return None if previous is None else now - previous


def _parse_bounds(text: str) -> Bounds:
    try:
        south, west, north, east = (float(part) for part in text.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError("expected south,west,north,east") from exc
    return Bounds(south=south, west=west, north=north, east=east)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Passive probe for a city's live vehicle feed.",
    )
    parser.add_argument("city", help="City identifier, e.g. warsaw.")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--bikes",
        action="store_true",
        help="Also fetch bike-share stations.",
    )
    parser.add_argument(
        "--bounds",
        type=_parse_bounds,
        default=None,
        help="Viewport as south,west,north,east; prints visible counts per snapshot.",
    )
    parser.add_argument(
        "--zoom",
        type=float,
        default=15.0,
        help="Viewport zoom used with --bounds.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s       : {runtime:.1f}")
    print(f"[probe]   total_snapshots : {stats.total_snapshots}")
    print(f"[probe]   last_count      : {stats.last_count}")
    print(f"[probe]   reconnects      : {stats.reconnects}")
    if stats.first_snapshot_at is not None:
        first = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.first_snapshot_at))
        print(f"[probe]   first_snapshot  : {first}")
    if stats.last_snapshot_at is not None:
        last = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.last_snapshot_at))
        print(f"[probe]   last_snapshot   : {last}")


async def _run(args: argparse.Namespace) -> int:
    config = TransitConfig.from_env()
    stats = ProbeStats(started_at=time.time())
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    session = CityMapSession(config, args.city, profile=CityProfile(stops=True, bikes=args.bikes))

    def on_snapshot(event: SnapshotEvent) -> None:
        if event.entity_class != EntityClass.VEHICLE:
            print(f"[probe] fetched {event.entity_class} count={event.count}")
            return
        delta = stats.on_snapshot(time.time(), event.count)
        gap_text = "first" if delta is None else f"{delta:.1f}s"
        line = f"[probe] snapshot#{stats.total_snapshots} vehicles={event.count} gap={gap_text}"
        if args.bounds is not None:
            visible = session.visible()
            line += f" visible={len(visible.vehicles)}/{len(visible.stops)}/{len(visible.bikes)}"
        print(line)

    def on_notification(notification: Notification | None, key: str) -> None:
        if notification is not None:
            print(f"[probe] notice[{key}] {notification.level}: {notification.message}")

    def on_reconnect(attempt: int) -> None:
        stats.reconnects += 1

    session.store.subscribe(on_snapshot)
    session.notifications.subscribe(on_notification)
    session.connection.on(FeedLifecycle.RECONNECT, on_reconnect)
    session.connection.on(FeedLifecycle.RECONNECT_FAILED, stop.set)

    print(f"[probe] Connecting to {config.api_root} city={args.city}...")
    async with session:
        if args.bounds is not None:
            session.move_end(args.bounds)
            session.zoom_end(args.zoom)
        timeout = args.duration if args.duration > 0 else None
        try:
            await asyncio.wait_for(stop.wait(), timeout)
        except TimeoutError:
            print(f"[probe] Reached --duration={args.duration}s, stopping.")

    _print_summary(stats)
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(_main())
