import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("CALENDAR_LOG_LEVEL", "INFO").upper()
_ROOT_NAME = "calendar_api"


def setup_logging() -> logging.Logger:
    level = getattr(logging, _DEFAULT_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger(_ROOT_NAME)
    logger.setLevel(level)

    # Avoid duplicate console handlers when the app is rebuilt (tests, reload)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        ch.setLevel(level)
        logger.addHandler(ch)

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(_ROOT_NAME)
    return base.getChild(name) if name else base


logger = setup_logging()
