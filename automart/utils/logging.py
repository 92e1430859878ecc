# automart/utils/logging.py
import logging
import sys

from automart.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_root():
    root = logging.getLogger("automart")
    if root.handlers:
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger hanging under the shared automart.* handler."""
    _configure_root()
    if not name.startswith("automart"):
        name = f"automart.{name}"
    return logging.getLogger(name)
