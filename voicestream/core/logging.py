"""
Structured JSON logging with:
  - Console output
  - Optional rotating file output (configurable size / backup count)
  - User / request IDs injected into every record
"""

import json
import logging
import logging.handlers
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any

from voicestream.config import get_settings

# ── Context variables so per-call metadata travels through async calls ───────
_user_id_var: ContextVar[str] = ContextVar("user_id", default="")
_request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_RESERVED = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName", "user_id", "request_id",
}


def set_logging_context(user_id: str = "", request_id: str = "") -> None:
    _user_id_var.set(user_id)
    _request_id_var.set(request_id)


def new_request_id() -> str:
    rid = str(uuid.uuid4())[:8]
    _request_id_var.set(rid)
    return rid


# ── JSON formatter ─────────────────────────────────────────────────────────────
class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "user_id": _user_id_var.get() or record.__dict__.get("user_id", ""),
            "request_id": _request_id_var.get() or record.__dict__.get("request_id", ""),
            "msg": record.getMessage(),
        }
        # Carry any extra keys set via `logger.info("...", extra={...})`
        for key, val in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = val

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging() -> None:
    """Install JSON handlers on the package logger (not the root logger)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    package_logger = logging.getLogger("voicestream")
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.propagate = False

    formatter = JsonFormatter()

    # Console
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    # Rotating file
    if settings.log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_file,
            maxBytes=settings.log_rotation_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
