from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

# Structured keys copied from `extra` into every JSON line
DRIVE_FIELDS = ("uuid", "device", "field", "source", "count", "error_code")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in DRIVE_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class DriveLoggerAdapter(logging.LoggerAdapter):
    """
    Logger bound to one drive, so every line carries its uuid (and device
    path when known) without repeating `extra=` at each call.

    Per-call `extra` is merged over the bound fields.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def drive_logger(logger: logging.Logger, uuid: str, device: Optional[str] = None) -> DriveLoggerAdapter:
    bound: Dict[str, Any] = {"uuid": uuid}
    if device:
        bound["device"] = device
    return DriveLoggerAdapter(logger, bound)


def get_logger(name: str = "diskmgt", level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(logging.INFO)
    if level:
        logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    return logger
