"""Process-wide logging setup.

Readable coloured lines in development; one JSON object per line when
``ENVIRONMENT`` is staging or production.
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

JSON_ENVIRONMENTS = ("production", "prod", "staging")


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{self.COLORS.get(record.levelname, '')}{record.levelname:8s}{self.RESET}"
        name = record.name if record.name != "__main__" else "main"
        line = f"[{timestamp}] {level} [{name}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
            "environment": os.getenv("ENVIRONMENT", "unknown"),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _formatter(environment: Optional[str] = None) -> logging.Formatter:
    environment = (environment or os.getenv("ENVIRONMENT", "development")).lower()
    if environment in JSON_ENVIRONMENTS:
        return JsonFormatter()
    return ColoredFormatter()


def init(level: Optional[str] = None, environment: Optional[str] = None) -> None:
    """Configure the root logger; every ``get_logger`` / ``logging.getLogger`` child inherits it."""
    resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(environment))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved)

    # uvicorn installs its own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
