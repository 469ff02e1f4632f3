import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every statement or frame at INFO.
NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "aio_pika",
    "aiormq",
    "httpx",
]


def setup_logging(level="INFO") -> logging.Logger:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid duplicate handlers when called twice (reload, tests).
    for handler in list(root_logger.handlers):
        if getattr(handler, "_merch_ledger", False):
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    handler._merch_ledger = True
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
