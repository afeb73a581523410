"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains
    LedgerSettings.  The file is taken from the ``path`` argument, else the
    ``LEDGER_CONFIG_PATH`` environment variable; with neither, defaults are
    returned.

Architecture position:
    Configuration.  Sits beside ``ledger_kernel``; the kernel MUST NEVER
    import from ``ledger_config``.  Modules receive settings through their
    own config dataclasses (``PhysicalCountConfig.from_settings``, ...).

Failure modes:
    - ``FileNotFoundError`` -- a path was given (or set in the environment)
      but does not exist.
    - ``ValueError`` -- invalid settings.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    source file and the effective values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from pathlib import Path

from ledger_config.loader import load_settings, parse_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"


def get_active_settings(path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint."""
    if path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        path = Path(env_path) if env_path else None
    else:
        path = Path(path)

    settings = load_settings(path) if path is not None else LedgerSettings()

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": str(path) if path is not None else "defaults",
            **{f"setting_{k}": v for k, v in asdict(settings).items()},
        },
    )
    return settings


__all__ = [
    "CONFIG_PATH_ENV",
    "LedgerSettings",
    "get_active_settings",
    "parse_settings",
]
