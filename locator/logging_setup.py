import json
import logging
import os
import sys
import time


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON log formatter:
      { "t": 169, "lvl": "INFO", "name": "mod", "msg": "text" }
    """

    def format(self, record):
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level=None, json_format=False, force=False):
    """
    Configure the ``locator`` logger once.

    Level precedence:
      - explicit `level` arg
      - env LOG_LEVEL (e.g., DEBUG/INFO/WARNING/ERROR)
      - default INFO
    """
    logger = logging.getLogger("locator")
    if getattr(logger, "_locator_configured", False) and not force:
        return

    lvl_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, lvl_name, None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    # Logs go to stderr so that JSON results on stdout stay parseable
    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(lvl)
    logger.propagate = False
    logger._locator_configured = True


def get_logger(name):
    """Get a module logger under the ``locator`` namespace."""
    return logging.getLogger(name)
