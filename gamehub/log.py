"""Logging setup for the server entry point."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level="INFO"):
    """Configure the root logger once; later calls only change the level."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    # websockets logs every handshake at INFO
    logging.getLogger("websockets").setLevel(max(level, logging.WARNING))
