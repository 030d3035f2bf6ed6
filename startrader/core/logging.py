import logging
import os

from startrader.core.config import settings

STARTUP_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_early_logging() -> logging.Logger:
    """Attach file and console handlers for errors raised before the app is up."""
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    early_logger = logging.getLogger("startrader.startup")
    early_logger.setLevel(logging.ERROR)
    if early_logger.handlers:
        return early_logger

    fh = logging.FileHandler(os.path.join(settings.LOG_DIR, "startup.log"))
    fh.setFormatter(logging.Formatter(STARTUP_FORMAT))
    early_logger.addHandler(fh)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(STARTUP_FORMAT))
    early_logger.addHandler(console_handler)
    return early_logger
