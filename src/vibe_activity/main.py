"""Application entrypoint: start the API server or replay a recording."""

from __future__ import annotations

import argparse
import json
import sys

import uvicorn

from vibe_activity.config import get_settings
from vibe_activity.logger import setup_logging
from vibe_activity.replay import ReplayError, replay_file


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="vibe-activity",
        description="Infer a developer's activity state from editor telemetry.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── replay ────────────────────────────────────────────────
    replay_parser = sub.add_parser(
        "replay", help="Replay a JSON-lines event recording on simulated time."
    )
    replay_parser.add_argument("path", help="Recording file (JSON lines).")
    replay_parser.add_argument(
        "--trailing-ms",
        type=float,
        default=0.0,
        help="Keep the clock running this long after the last record.",
    )

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "vibe_activity.api.server:create_app",
            factory=True,
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "replay":
        try:
            transitions = replay_file(args.path, settings=settings, trailing_ms=args.trailing_ms)
        except (OSError, ReplayError) as exc:
            print(f"replay failed: {exc}", file=sys.stderr)
            sys.exit(2)
        for t in transitions:
            print(json.dumps(t.to_payload()))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
