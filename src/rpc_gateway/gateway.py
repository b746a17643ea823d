import logging
import traceback
from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask, Response, current_app, jsonify, request, send_file
from werkzeug.exceptions import BadRequest, HTTPException

from .config import GatewayConfig
from .introspection import MethodCatalog
from .registry import RpcError, RpcRegistry, InvalidRequest, ParseError

logger = logging.getLogger("rpc_gateway")

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


def _traceback_str(e: Exception) -> str:
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))


def _plain(text: str, status: int) -> Response:
    return Response(text, status=status, mimetype="text/plain")


def _adopt_gunicorn_logging(app: Flask) -> None:
    gunicorn_error_logger = logging.getLogger("gunicorn.error")
    if gunicorn_error_logger.handlers:
        for name in (app.logger.name, logger.name, "werkzeug"):
            target = logging.getLogger(name)
            target.handlers = list(gunicorn_error_logger.handlers)
            target.setLevel(gunicorn_error_logger.level)
            target.propagate = False


def preflight_response(origin: Optional[str], allowed_origins) -> Response:
    """
    CORS preflight answer. A non allow-listed origin still gets a 204, only
    with an empty Access-Control-Allow-Origin value.
    """
    resp = Response(status=204)
    resp.headers["Access-Control-Allow-Origin"] = origin if origin and origin in allowed_origins else ""
    resp.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    resp.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    return resp


def parse_rpc_payload(payload: Any) -> tuple[str, list]:
    if not isinstance(payload, dict):
        raise InvalidRequest()
    method = payload.get("method")
    args = payload.get("args", [])
    if not isinstance(method, str) or not isinstance(args, list):
        raise InvalidRequest()
    return method, args


def make_rpc_app(api: Mapping[str, Any] | object, config: Optional[GatewayConfig] = None) -> Flask:
    """
    Build a Flask application exposing the functions of `api` over HTTP.

    Routes:
        - GET  /                static file (when configured)
        - GET  /rpc/methods     discovery
        - OPTIONS *             CORS preflight
        - POST /rpc             {"method": str, "args": [...]} -> {"result": ...}
    """
    config = config or GatewayConfig()
    registry = RpcRegistry(api)
    catalog = MethodCatalog(registry, source_file=config.source_file)

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions["rpc_gateway"] = {"config": config, "registry": registry, "catalog": catalog}
    _adopt_gunicorn_logging(app)

    static_path = Path(config.static_file).absolute() if config.static_file else None

    # ---------------------------------------------------------------------
    # Request hooks
    # ---------------------------------------------------------------------

    @app.before_request
    def log_and_preflight():
        logger.info(
            "%s %s from %s",
            request.method,
            request.url,
            request.headers.get("Origin") or "unknown origin",
        )
        if request.method == "OPTIONS":
            return preflight_response(request.headers.get("Origin"), config.allowed_origins)
        # Flask answers HEAD on every GET route; only GET is served here
        if request.method == "HEAD":
            return _plain("Not found", 404)
        return None

    # ---------------------------------------------------------------------
    # Error handlers
    # ---------------------------------------------------------------------

    @app.errorhandler(RpcError)
    def handle_rpc_error(e: RpcError):
        current_app.logger.info("RPC request rejected: %s", e.message)
        if e.plain_text:
            return _plain(e.message, e.http_status)
        return jsonify(e.to_error_obj()), e.http_status

    @app.errorhandler(404)
    @app.errorhandler(405)
    def handle_not_found(e: HTTPException):
        return _plain("Not found", 404)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        current_app.logger.error("Unhandled exception in request", exc_info=e)
        return jsonify({"error": str(e) or "Unknown error"}), 500

    # ---------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------

    def serve_static():
        if static_path is None or not static_path.is_file():
            return _plain("Not found", 404)
        if config.on_connect is not None:
            try:
                current_app.ensure_sync(config.on_connect)()
            except Exception:
                logger.exception("connect hook failed")
        return send_file(static_path, mimetype="text/html")

    @app.route("/", methods=["GET"])
    def index():
        return serve_static()

    @app.route("/<path:name>", methods=["GET"])
    def static_page(name: str):
        if static_path is None or name != static_path.name:
            return _plain("Not found", 404)
        return serve_static()

    @app.route("/rpc/methods", methods=["GET"])
    def methods():
        return jsonify(catalog.to_json()), 200

    @app.route("/rpc", methods=["POST"])
    async def rpc():
        if "application/json" not in (request.headers.get("Content-Type") or ""):
            raise InvalidRequest()
        try:
            payload = request.get_json(force=True)
        except BadRequest:
            raise ParseError()
        method, args = parse_rpc_payload(payload)

        spec = registry.lookup(method)
        spec.check_arguments(args)
        try:
            result = await spec.invoke(args)
            return jsonify({"result": result}), 200
        except Exception as e:
            current_app.logger.error("RPC method %s failed\n%s", method, _traceback_str(e))
            return jsonify({"error": str(e) or "Unknown error"}), 500

    return app


def serve_app(app: Flask, config: GatewayConfig, **run_kwargs) -> None:
    """Serve an already built gateway app with the Flask development server."""
    registry: RpcRegistry = app.extensions["rpc_gateway"]["registry"]
    base_url = f"http://{config.host}:{config.port}"
    logger.info("RPC server listening at %s", base_url)
    logger.info("   API methods: %s", ", ".join(registry.names()))
    logger.info("   Discovery: %s/rpc/methods", base_url)
    run_kwargs.setdefault("threaded", True)
    app.run(host=config.host, port=config.port, **run_kwargs)


def run_rpc_server(api: Mapping[str, Any] | object, config: Optional[GatewayConfig] = None, **run_kwargs) -> None:
    """Build the app for `api` and serve it with the Flask development server."""
    config = config or GatewayConfig()
    serve_app(make_rpc_app(api, config), config, **run_kwargs)
