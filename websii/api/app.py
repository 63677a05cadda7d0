"""
Flask application for the Websii server.

Routes:
- POST <control path>: remote control commands (see websii.control.protocol)
- GET  <stream path>:  server-sent reload events
- GET  anything else:  static files, directory listings, direct-file mode
"""

import time
from typing import Any, Dict, Optional

from flask import Flask, Response, current_app, g, jsonify, request
from flask_cors import CORS

from websii.control.handler import ControlHandler
from websii.control.protocol import ControlResponse, InvalidCommand, parse_command
from websii.errors import WebsiiError
from websii.reload.broadcast import ReloadChannel
from websii.reload.stream import event_stream
from websii.serving.responder import ContentResponder
from websii.serving.state import ServingState
from websii.utils.config import DEFAULT_CONFIG
from websii.utils.logging_config import get_logger

logger = get_logger("api.app")


class ServerContext:
    """Everything a request handler needs, stored in ``app.extensions["websii"]``."""

    def __init__(self, state: ServingState, channel: ReloadChannel, control: ControlHandler,
                 responder: ContentResponder, keepalive_interval: float, poll_interval: float = 1.0):
        self.state = state
        self.channel = channel
        self.control = control
        self.responder = responder
        self.keepalive_interval = keepalive_interval
        self.poll_interval = poll_interval


def create_app(config: Optional[Dict[str, Any]] = None, state: Optional[ServingState] = None,
               channel: Optional[ReloadChannel] = None,
               control: Optional[ControlHandler] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        config: Full configuration dict, defaults to DEFAULT_CONFIG
        state: Serving state; required unless ``control`` is given
        channel: Reload channel shared with the watcher; created if omitted
        control: Control handler; created from ``state`` if omitted

    Returns:
        The configured Flask app
    """
    config = config or DEFAULT_CONFIG
    reload_config = config.get("reload", DEFAULT_CONFIG["reload"])
    control_config = config.get("control", DEFAULT_CONFIG["control"])

    if control is not None:
        state = control.state
    if state is None:
        raise ValueError("create_app needs a ServingState or a ControlHandler")
    if channel is None:
        channel = state.reload_channel or ReloadChannel(reload_config.get("subscriber_queue_size", 16))
    state.reload_channel = channel
    if control is None:
        control = ControlHandler(
            state,
            port=config.get("server", {}).get("port"),
            stop_grace_seconds=control_config.get("stop_grace_seconds", 1.0),
        )

    stream_path = reload_config.get("stream_path", "/__reload__")
    control_paths = control_config.get("paths", ["/control"])
    if isinstance(control_paths, str):
        control_paths = [control_paths]

    app = Flask(__name__)
    app.extensions["websii"] = ServerContext(
        state=state,
        channel=channel,
        control=control,
        responder=ContentResponder(stream_path, reload_config.get("fallback_reload_ms", 5000)),
        keepalive_interval=float(reload_config.get("keepalive_interval", 15)),
        poll_interval=float(reload_config.get("poll_interval", 1)),
    )

    # Only the event stream is open to other origins.
    CORS(app, resources={stream_path: {"origins": "*"}})

    @app.before_request
    def before_request():
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        duration = time.time() - g.get("start_time", time.time())
        logger.info(f"{request.method} {request.path} - {response.status_code} ({duration:.4f}s)")
        return response

    @app.errorhandler(WebsiiError)
    def handle_websii_error(error):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path}: {error.message}")
        else:
            logger.debug(f"{request.method} {request.path}: {error.message}")
        return Response(_STATUS_TEXT.get(error.status_code, "Error"), status=error.status_code,
                        mimetype="text/plain")

    def control_endpoint():
        payload = request.get_json(silent=True)
        try:
            command = parse_command(payload)
        except InvalidCommand as e:
            return jsonify(ControlResponse.error(f"Invalid command: {e}").to_dict()), 400
        result = current_app.extensions["websii"].control.handle(command)
        return jsonify(result.to_dict())

    for index, path in enumerate(control_paths):
        app.add_url_rule(path, f"control_{index}", control_endpoint, methods=["POST"])

    def reload_stream():
        ctx = current_app.extensions["websii"]
        # Attach before responding so an exhausted stream limit becomes a 503.
        subscription = ctx.channel.subscribe()
        response = Response(
            event_stream(
                ctx.channel,
                ctx.keepalive_interval,
                subscription=subscription,
                is_disconnected=request.environ.get("waitress.client_disconnected"),
                poll_interval=ctx.poll_interval,
            ),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
        response.call_on_close(subscription.close)
        return response

    app.add_url_rule(stream_path, "reload_stream", reload_stream, methods=["GET"])

    @app.route("/", defaults={"path": ""}, methods=["GET"])
    @app.route("/<path:path>", methods=["GET"])
    def serve(path):
        ctx = current_app.extensions["websii"]
        content = ctx.responder.respond(request.path, ctx.state.snapshot())
        return Response(content.body, content_type=content.content_type)

    return app


_STATUS_TEXT = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    503: "Service Unavailable",
}
