"""
Console logging setup.

Logs go to stderr only. Module loggers are named ``forwarder.<area>``
and emit snake_case event names with structured ``extra`` context.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Bind the root logger once, at DEBUG when requested."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        stream=sys.stderr,
        format=LOG_FORMAT,
        force=True,
    )
    # httpx logs every request at INFO, which would leak webhook tokens.
    logging.getLogger("httpx").setLevel(logging.WARNING)
