"""
AgentRelay logging utilities.

Every module logs through ``logging.getLogger(__name__)``; this only wires a
handler onto the package logger for the server and the CLI.
"""

import logging
from typing import Optional

_relay_logger = logging.getLogger("agentrelay")

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: int = logging.INFO,
    handler: Optional[logging.Handler] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a formatted handler to the ``agentrelay`` logger.

    Calling it again replaces the previously attached handler instead of
    stacking a second one.
    """
    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))

    for existing in list(_relay_logger.handlers):
        if getattr(existing, "_agentrelay", False):
            _relay_logger.removeHandler(existing)

    handler._agentrelay = True
    _relay_logger.addHandler(handler)
    _relay_logger.setLevel(level)
    return _relay_logger
