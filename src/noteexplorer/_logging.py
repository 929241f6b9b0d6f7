"""Logging setup for the noteexplorer command line.

Library modules only create loggers (`log = logging.getLogger(__name__)`);
handlers are attached once, by the CLI, under the "noteexplorer" logger.

What goes where:
    debug    load timings, every file written
    info     renames and write summaries
    warning  unreadable files, duplicate IDs, skipped renames
    error    writes that failed

NOTEEXPLORER_LOG_LEVEL picks the level (default INFO); --quiet raises it
to ERROR.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "noteexplorer"
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging() -> None:
    """Attach a stderr handler to the package logger, once."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers:
        return

    level = getattr(logging, os.environ.get("NOTEEXPLORER_LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger.setLevel(level)
    package_logger.addHandler(handler)
    # Messages are printed here only, not again by the root logger
    package_logger.propagate = False


def set_quiet_mode(quiet: bool) -> None:
    """Show only errors when --quiet is given."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    level = logging.ERROR if quiet else logging.INFO
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        handler.setLevel(level)
