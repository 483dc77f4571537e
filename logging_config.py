"""Logging setup shared by the application and scripts."""

import logging

from flask import g, has_app_context

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the current request id (or ``-``) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = None
        if has_app_context():
            request_id = g.get("request_id")
        record.request_id = request_id or "-"
        return True


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger()
    if not any(getattr(h, "_medequip", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(RequestIdFilter())
        handler._medequip = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
