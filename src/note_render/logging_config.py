"""Configure logging for the application.

Rendered HTML goes to stdout, so every log record goes to stderr.
"""

import logging
import sys

DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
PLAIN_FORMAT = "%(levelname)s: %(message)s"


def setup_logging(debug: bool = False, quiet: bool = False) -> None:
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO

    if debug:
        formatter = logging.Formatter(DEBUG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = logging.Formatter(PLAIN_FORMAT)

    package_logger = logging.getLogger("note_render")
    package_logger.setLevel(level)
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    package_logger.addHandler(handler)

    # One request line per profile fetch is noise outside debug mode
    httpx_level = logging.DEBUG if debug else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(httpx_level)
