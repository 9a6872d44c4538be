import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once; modules log through logging.getLogger(__name__)."""
    root = logging.getLogger()
    if level:
        root.setLevel(logging.getLevelName(level.upper()))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return logging.getLogger("xat_api")
