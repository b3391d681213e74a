"""KaTeX macro service — HTTP wrapper around the stylesheet parser.

Provides /parse and /health endpoints using stdlib http.server.

Usage:
    python -m katex_macros.main

Environment (or project .env):
    KATEX_MACROS_PORT=8770         # HTTP listen port
    KATEX_MACROS_MAX_PASSES=100    # Optional-argument expansion pass limit
    KATEX_MACROS_LOG_LEVEL=INFO    # Logging level
"""

from __future__ import annotations

import json
import logging
import signal
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

from katex_macros import config
from katex_macros.models import CyclicMacroExpansion
from katex_macros.parse import parse_report

logger = logging.getLogger(__name__)

_start_time: float = 0.0


class ApiError(Exception):
    """Request failure rendered as a JSON error envelope."""

    def __init__(self, status: int, code: str, message: str,
                 details: dict | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details

    def payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": str(self), "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for journald/Loki ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "service": "katex-macros",
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _parse_request(data: Any) -> tuple[str, bool]:
    """Validate a /parse body, returning (source, with_report)."""
    if not isinstance(data, dict):
        raise ApiError(400, "INVALID_REQUEST", "request body must be a JSON object")
    source = data.get("source")
    if not isinstance(source, str):
        raise ApiError(400, "INVALID_REQUEST", "source field must be a string")
    with_report = data.get("report", False)
    if not isinstance(with_report, bool):
        raise ApiError(400, "INVALID_REQUEST", "report field must be a boolean")
    return source, with_report


def _run_parse(source: str, with_report: bool) -> dict[str, Any]:
    start = time.time()
    try:
        report = parse_report(source, config.get_max_passes())
    except CyclicMacroExpansion as exc:
        logger.warning("parse rejected: %s", exc)
        raise ApiError(
            422, "CYCLIC_EXPANSION", str(exc),
            {"macro": exc.macro, "passes": exc.passes},
        ) from exc
    elapsed = int((time.time() - start) * 1000)

    logger.info(
        "parse lines=%d macros=%d skipped=%d time_ms=%d",
        source.count("\n") + 1, len(report.macros), len(report.skipped), elapsed,
    )

    response: dict[str, Any] = {
        "macros": report.macros,
        "count": len(report.macros),
        "time_ms": elapsed,
    }
    if with_report:
        response["skipped"] = [
            {"line": lineno, "text": text} for lineno, text in report.skipped
        ]
        response["overridden"] = report.overridden
    return response


class MacroHandler(BaseHTTPRequestHandler):
    """HTTP handler for the macro service."""

    routes = {
        ("POST", "/parse"): "_handle_parse",
        ("GET", "/health"): "_handle_health",
    }

    def do_POST(self) -> None:
        self._dispatch("POST")

    def do_GET(self) -> None:
        self._dispatch("GET")

    def _dispatch(self, method: str) -> None:
        handler_name = self.routes.get((method, self.path))
        try:
            if handler_name is None:
                raise ApiError(404, "NOT_FOUND", f"No route for {method} {self.path}")
            response = getattr(self, handler_name)()
        except ApiError as exc:
            self._reply(exc.payload(), exc.status)
            return
        self._reply(response)

    def _handle_parse(self) -> dict[str, Any]:
        source, with_report = _parse_request(self._body())
        return _run_parse(source, with_report)

    def _handle_health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "service": "katex-macros",
            "uptime_seconds": round(time.time() - _start_time, 1),
        }

    def _body(self) -> Any:
        length = int(self.headers.get("Content-Length") or 0)
        if length <= 0:
            raise ApiError(400, "INVALID_JSON", "Request body is empty")
        raw = self.rfile.read(length)
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ApiError(400, "INVALID_JSON", f"Invalid JSON: {exc}") from exc

    def _reply(self, payload: dict[str, Any], status: int = 200) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


def setup_logging(json_output: bool = True) -> None:
    """Configure the root logger from KATEX_MACROS_LOG_LEVEL."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.get_log_level(), logging.INFO))
    root.handlers.clear()
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def main() -> None:
    """Start the macro service."""
    global _start_time

    setup_logging()

    port = config.get_port()
    _start_time = time.time()

    server = HTTPServer(("0.0.0.0", port), MacroHandler)

    if threading.current_thread() is threading.main_thread():
        def sigterm_handler(signum: int, frame: Any) -> None:
            logger.info("SIGTERM received, shutting down...")
            # shutdown() blocks until serve_forever exits, so not from its thread
            threading.Thread(target=server.shutdown, daemon=True).start()
        signal.signal(signal.SIGTERM, sigterm_handler)

    logger.info("KaTeX macro service starting at %s", config.get_service_url())

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        logger.info("KaTeX macro service stopped")


if __name__ == "__main__":
    main()
