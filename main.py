#!/usr/bin/env python3
"""journal-sse entry point: serve the SSE endpoint, or tail one stream to stdout."""

import argparse
import logging
import sys

from journal_sse.config import load_config, load_yaml_config
from journal_sse.controls import parse_controls
from journal_sse.emitter import EventEmitter
from journal_sse.supervisor import ProcessSupervisor
from journal_sse.web import build_controller, create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [JOURNAL-SSE] %(levelname)s %(message)s"


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="systemd journal to Server-Sent Events bridge")
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: 8080)")

    tail = sub.add_parser("tail", help="Write one event stream to stdout")
    tail.add_argument("--playback", default="1", help="0 disables the replay phase")
    tail.add_argument("--backlog", default=None, help="Entries to replay (0..2000)")
    tail.add_argument("--heartbeat", default=None, help="Heartbeat seconds (5..60)")
    tail.add_argument("--priority-min", default=None, help="Most severe priority (0..7)")
    tail.add_argument("--priority-max", default=None, help="Least severe priority (0..7)")
    tail.add_argument("--unit", default=None, help="Comma-separated units, or *")
    tail.add_argument("--cursor", default=None, help="Resume after this journal cursor")
    return parser


def run_tail(config, args) -> int:
    params = {
        "playback": args.playback,
        "backlog": args.backlog,
        "heartbeat": args.heartbeat,
        "priority_min": args.priority_min,
        "priority_max": args.priority_max,
        "unit": args.unit,
    }
    controls = parse_controls(
        {k: v for k, v in params.items() if v is not None},
        args.cursor,
        default_unit=config.default_unit,
    )
    supervisor = ProcessSupervisor(grace=config.spawn_grace)
    events = build_controller(config, controls, supervisor).run()
    emitter = EventEmitter(sys.stdout)

    try:
        for event in events:
            emitter.emit(event)
    except BrokenPipeError:
        logger.info("Consumer closed the stream")
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        # tears down the current journalctl process
        events.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_cli_parser().parse_args(argv)

    # set up first: config loading already logs
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)

    overrides = {}
    if args.command == "serve":
        overrides = {"host": args.host, "port": args.port}
    config = load_config(load_yaml_config(args.config), overrides)
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    if args.command == "tail":
        return run_tail(config, args)

    app = create_app(config)
    logger.info("Serving on %s:%d (default unit %s)", config.host, config.port, config.default_unit)
    app.run(host=config.host, port=config.port, threaded=True, use_reloader=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
