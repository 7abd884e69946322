"""
Logging configuration.

The packaged `src/bloommarket/config/logging.yaml` describes handlers/formatters; the
level comes from settings (`app.log_level`, overridable via `BLOOMMARKET_LOG_LEVEL`).
"""

from __future__ import annotations

import copy
import logging.config

from bloommarket.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged logging config, with `level` (or the settings level) on root + handlers."""
    # get_logging_config() is cached; never mutate the shared dict.
    config = copy.deepcopy(get_logging_config())
    effective = (level or get_settings().app.log_level).upper()

    config.setdefault("root", {})["level"] = effective
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = effective

    if effective == "DEBUG":
        # Show request lines from the HTTP stack too.
        for name in ("httpx", "httpcore"):
            config.get("loggers", {}).pop(name, None)

    logging.config.dictConfig(config)
