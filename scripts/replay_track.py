"""Replay a recorded drive through the sector tracker and print its events.

Input is either a JSON list of fix objects or a CSV with the header
``latitude,longitude,speed_kmh,timestamp_ms``.

Usage:
    uv run python scripts/replay_track.py drive.csv
    uv run python scripts/replay_track.py drive.json --sectors my_sectors.json
    uv run python scripts/replay_track.py drive.csv --settings settings.json -v
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from sector_tracker.config import load_settings
from sector_tracker.geo.models import LocationFix
from sector_tracker.sectors.catalog import SectorCatalog
from sector_tracker.tracking.notifications import NotificationComposer
from sector_tracker.tracking.state_machine import SectorTracker


def _load_fixes(path: Path) -> list[LocationFix]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        rows = json.loads(text)
    else:
        rows = list(csv.DictReader(text.splitlines()))
    fixes: list[LocationFix] = []
    for row in rows:
        try:
            fixes.append(LocationFix.from_dict(row))
        except ValueError as exc:
            print(f"WARNING: {exc}", file=sys.stderr)
    return fixes


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay GPS fixes through the sector tracker")
    ap.add_argument("fixes", type=Path, help="CSV or JSON file of fixes")
    ap.add_argument("--sectors", default=None, help="Sector catalog JSON (default: bundled)")
    ap.add_argument("--settings", default=None, help="Notification settings JSON")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    tracker = SectorTracker(SectorCatalog.from_json(args.sectors), settings=settings)
    composer = NotificationComposer(settings)

    fixes = _load_fixes(args.fixes)
    print(f"Replaying {len(fixes)} fix(es) from {args.fixes}")

    for fix in fixes:
        for event in tracker.process(fix):
            print(f"[{fix.timestamp_ms}] {event.type}: {json.dumps(event.to_dict(), ensure_ascii=False)}")
            note = composer.compose(event)
            if note is not None:
                print(f"    {note.title} | {note.body.replace(chr(10), ' | ')}")

    snap = tracker.snapshot()
    if snap.in_sector:
        print(
            f"\nStill inside {snap.sector_name}: avg {snap.current_average_speed:.1f} km/h, "
            f"progress {snap.progress:.0%}"
        )

    print(f"\n{len(tracker.history)} completed pass(es):")
    for entry in tracker.history:
        flag = "EXCEEDED" if entry.exceeded else "ok"
        print(
            f"  {entry.sector_name}: {entry.average_speed:.1f}/{entry.speed_limit:g} km/h "
            f"in {entry.duration_ms / 1000:.0f}s [{flag}]"
        )


if __name__ == "__main__":
    main()
