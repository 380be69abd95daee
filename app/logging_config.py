"""
Logging configuration.

Every record leaving the root handler is stamped with the request it was
emitted under: the request id, the signed-in account uid and, for
Socket.IO events, the connection sid.  Records emitted from background
threads (Firestore watches, the reminder worker) carry ``-`` instead.

LOG_FORMAT=json switches the handler to one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CONTEXT_FIELDS = ("request_id", "uid", "sid")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s %(uid)s]: %(message)s"


def _current_uid() -> str:
    client_session = g.get("client_session")
    account = client_session.account if client_session is not None else None
    return account.uid if account is not None and account.uid else "-"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = g.get("request_id", "-")
            record.uid = _current_uid()
            record.sid = getattr(request, "sid", "-")
        else:
            for name in CONTEXT_FIELDS:
                if not hasattr(record, name):
                    setattr(record, name, "-")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, "-")
            if value != "-":
                entry[name] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _request_id() -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming[:64] if incoming else uuid.uuid4().hex[:12]


def init_logging(app: Flask) -> None:
    log_format = app.config.get("LOG_FORMAT", "text")
    log_level = app.config.get("LOG_LEVEL", "INFO")

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    # Per-poll and per-request chatter from the server stack
    for name in ("werkzeug", "engineio", "socketio", "apscheduler", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

    @app.before_request
    def _attach_request_id():
        g.request_id = _request_id()
        g.request_start = time.time()

    @app.after_request
    def _log_request(response):
        response.headers.setdefault(REQUEST_ID_HEADER, g.get("request_id", "-"))
        if request.path.startswith(("/static", "/socket.io")) or request.path == "/health":
            return response
        duration_ms = (time.time() - g.get("request_start", time.time())) * 1000
        app.logger.info(
            "%s %s %s %.0fms",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
        )
        return response
