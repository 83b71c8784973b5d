# commander/utils/logger.py
"""
Ops Commander logging utilities
-------------------------------
Every component logs through a named stdlib logger (``commander.<component>``);
this module configures the root logger once per process.

Features:
 - JSONFormatter for log shipping from inside the cluster
 - HumanFormatter for local runs
 - Idempotent configure_logging() driven by Settings / environment

Usage:
    from commander.utils.logger import configure_logging
    configure_logging(app_name="ops-commander", level="INFO", json=True)
    log = logging.getLogger("commander.fanout")
    log.info("hello", extra={"pod": "commander-api-abc"})
"""

from __future__ import annotations

import os
import sys
import socket
import logging
import threading
from typing import Any, Dict, Optional

from commander.utils.common import json_dumps
from commander.utils.time_utils import iso_now

DEFAULT_LOG_LEVEL = os.getenv("COMMANDER_LOG_LEVEL", "INFO").upper()

# LogRecord attributes that are never copied into the "extra" block
_RESERVED = frozenset((
    "args", "msg", "levelname", "levelno", "name", "pathname", "filename", "module",
    "lineno", "funcName", "exc_info", "exc_text", "stack_info", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    "message", "asctime",
))


def _get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown-host"


# -------------------------
# Formatters
# -------------------------
class JSONFormatter(logging.Formatter):
    """
    JSON formatter that attaches standard fields:
      - ts, level, logger, message, module, line
      - service, hostname, pid
      - anything passed through ``extra=``
    """
    def __init__(self, service_name: str = "ops-commander", extra_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.service = service_name
        self.extra_fields = extra_fields or {}
        self.hostname = _get_hostname()
        self.pid = os.getpid()

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": iso_now(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
            "service": self.service,
            "hostname": self.hostname,
            "pid": self.pid,
        }
        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(self.extra_fields)
        return json_dumps(payload)


class HumanFormatter(logging.Formatter):
    """Human-friendly single line formatter; appends the pod name when one is attached."""
    def __init__(self):
        super().__init__(fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pod = getattr(record, "pod", None)
        if pod:
            base = f"{base} | pod={pod}"
        return base


# -------------------------
# Configuration
# -------------------------
_DEFAULT_CONFIGURED = False
_LOCK = threading.Lock()


def configure_logging(
    app_name: str = "ops-commander",
    level: Optional[str] = None,
    json: bool = True,
    extra_fields: Optional[Dict[str, Any]] = None,
):
    """
    Configure root logging for the service. Safe to call more than once;
    only the first call installs handlers.
    """
    global _DEFAULT_CONFIGURED
    with _LOCK:
        if _DEFAULT_CONFIGURED:
            return
        level = (level or DEFAULT_LOG_LEVEL).upper()
        root = logging.getLogger()
        root.setLevel(getattr(logging, level, logging.INFO))

        ch = logging.StreamHandler(stream=sys.stdout)
        if json:
            ch.setFormatter(JSONFormatter(service_name=app_name, extra_fields=extra_fields))
        else:
            ch.setFormatter(HumanFormatter())
        root.addHandler(ch)

        # kubernetes client logs every watch reconnect at INFO
        logging.getLogger("kubernetes").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        _DEFAULT_CONFIGURED = True
