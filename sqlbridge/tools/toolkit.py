"""
sqlbridge/tools/toolkit.py
==========================

Dependency container handed to every tool handler.

Tool handlers (in ``tool_definitions/``) need the database client and the
error handler.  ``Toolkit`` creates **one instance of each** and the executor
passes it explicitly to every handler call, so tests can swap in a fake
database without touching module state.
"""

import logging

from ..config import Config
from .database import Database
from .error_handler import ErrorHandler

logger = logging.getLogger(__name__)


class Toolkit:
    """Wires the infrastructure clients together.

    Parameters
    ----------
    config:
        A fully populated ``Config`` instance.
    database:
        Optional pre-built database client; a lazy-connecting ``Database`` is
        created from ``config`` when omitted.
    """

    def __init__(self, config: Config, database=None):
        self.config = config
        self.database = database if database is not None else Database(config)
        self.error_handler = ErrorHandler()
        logger.debug("Toolkit initialised with config for account: %s", config.snowflake_account)

    def close(self) -> None:
        close = getattr(self.database, "close", None)
        if close is not None:
            close()
