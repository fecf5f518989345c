"""Logging setup for the command line. Command output goes to stdout, logs to stderr."""

import logging
import sys

# chatty at INFO about backend discovery
_NOISY_LOGGERS = ("keyring", "asyncio")


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
