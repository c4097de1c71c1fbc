"""
Logging setup shared by the API process and the maintenance scripts.
"""

import logging
import sys
from typing import Iterable

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# httpx logs full request URLs, which carry OAuth codes on the callback path.
_CHATTY_LOGGERS = ("httpx", "botocore", "boto3")


def configure_logging(
    level: str = "INFO", *, quiet: Iterable[str] = _CHATTY_LOGGERS
) -> None:
    """Send records to stdout and cap third-party loggers at WARNING."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stdout)
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_FORMAT", "configure_logging"]
