"""Flask app exposing the journal bridge as a Server-Sent Events endpoint."""

import logging

from flask import Flask, Response, jsonify, request, stream_with_context

from journal_sse.config import Config
from journal_sse.controls import parse_controls
from journal_sse.emitter import EventEmitter
from journal_sse.errors import SourceToolMissing
from journal_sse.multiplexer import StreamMultiplexer
from journal_sse.playback import PlaybackController
from journal_sse.stats import StreamStats
from journal_sse.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


def build_controller(config: Config, controls, supervisor, stats=None) -> PlaybackController:
    """Wire one connection's controller from server config and consumer controls."""
    return PlaybackController(
        controls,
        supervisor=supervisor,
        multiplexer=StreamMultiplexer(
            source_tag=config.source_tag, poll_timeout=config.poll_timeout,
        ),
        journalctl_path=config.journalctl_path,
        source_tag=config.source_tag,
        restart_delay=config.restart_delay,
        stats=stats,
    )


def create_app(config: Config | None = None, supervisor: ProcessSupervisor | None = None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config()
    if supervisor is None:
        supervisor = ProcessSupervisor(grace=config.spawn_grace)
    stats = StreamStats()

    # shared by every connection; /health and /stats read them too
    app.config["components"] = {
        "config": config,
        "supervisor": supervisor,
        "stats": stats,
    }

    @app.route("/stream")
    def stream():
        controls = parse_controls(
            request.args,
            request.headers.get("Last-Event-ID"),
            default_unit=config.default_unit,
        )
        controller = build_controller(config, controls, supervisor, stats)
        emitter = EventEmitter(on_event=stats.record_event)
        remote = request.remote_addr

        def generate():
            stats.connection_opened()
            logger.info("Client %s connected: %s", remote, controls.describe())
            try:
                yield from emitter.stream(controller.run())
            finally:
                stats.connection_closed()
                logger.info("Client %s disconnected", remote)

        return Response(
            stream_with_context(generate()),
            mimetype="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.route("/health")
    def health():
        try:
            path = supervisor.locate(config.journalctl_path)
        except SourceToolMissing:
            path = None
        return jsonify(status="ok", journalctl=path)

    @app.route("/stats")
    def stats_view():
        return jsonify(stats.snapshot())

    return app
