"""Live sector tracking from a stream of JSON-lines fixes on stdin.

Each input line is a JSON object with ``latitude``, ``longitude``,
``speed_kmh`` (or ``speed`` in m/s) and ``timestamp_ms``.  Press Ctrl+C to quit;
tracking state is persisted on exit and picked up again on the next start.

Usage:
    gpspipe -w | my_adapter | uv run python scripts/track_live.py
    uv run python scripts/track_live.py --no-routes < drive.jsonl
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from sector_tracker.config import AppConfig, load_settings  # noqa: E402
from sector_tracker.recording.recorder import ViolationRecorder  # noqa: E402
from sector_tracker.sectors.catalog import SectorCatalog  # noqa: E402
from sector_tracker.sectors.routing import RouteLoader, RouteProvider  # noqa: E402
from sector_tracker.tracking.continuity import ContinuityBridge, JsonStateStore  # noqa: E402
from sector_tracker.tracking.engine import TrackingEngine  # noqa: E402
from sector_tracker.tracking.notifications import Notification  # noqa: E402
from sector_tracker.tracking.state_machine import SectorTracker  # noqa: E402
from sector_tracker.tracking.stream import FixStream, JsonLinesSource  # noqa: E402


def _print_notification(note: Notification) -> None:
    print(f"\n  >> {note.title}", flush=True)
    for line in note.body.splitlines():
        print(f"     {line}", flush=True)


def main() -> None:
    ap = argparse.ArgumentParser(description="Sector tracker — live fix stream on stdin")
    ap.add_argument("--sectors", default=None, help="Sector catalog JSON (default: bundled)")
    ap.add_argument("--no-routes", action="store_true", help="Skip road route resolution")
    ap.add_argument("--hz", type=float, default=10.0, help="Input polling rate")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = AppConfig.from_env()
    settings = load_settings(cfg.settings_path)
    catalog = SectorCatalog.from_json(args.sectors)
    tracker = SectorTracker(catalog, settings=settings)

    loader = None
    if not args.no_routes and cfg.routing_token:
        loader = RouteLoader(catalog, RouteProvider(cfg.routing_token, base_url=cfg.routing_url))

    recorder = ViolationRecorder(cfg.recorder_url) if cfg.recorder_url else None
    source = JsonLinesSource(sys.stdin)
    stream = FixStream(source, target_hz=args.hz)
    engine = TrackingEngine(
        stream,
        tracker,
        notifier=_print_notification,
        recorder=recorder,
        device_id=cfg.device_id,
        bridge=ContinuityBridge(tracker, JsonStateStore(cfg.state_path)),
        route_loader=loader,
    )

    engine.start()
    print("Tracking. Press Ctrl+C to stop.", flush=True)
    try:
        while stream.running or stream.queue_size():
            engine.poll(timeout=0.2)
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop()
        if recorder is not None:
            recorder.wait(timeout=5.0)
        print(f"\nStopped. {len(tracker.history)} completed pass(es) this run.")


if __name__ == "__main__":
    main()
