"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; the services layer passes plain values down.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Source precedence: explicit path, then the ``LEDGER_CONFIG``
      environment variable, then the packaged ``defaults.yaml``.
      ``DATABASE_URL`` overrides ``database.url`` from any source.

Failure modes:
    - ``FileNotFoundError`` -- the selected settings file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema or value validation failures.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    source path and checksum of the data that was loaded.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_settings
from ledger_config.schema import (
    AlertSettings,
    DatabaseSettings,
    LedgerSettings,
    RetrySettings,
    SettlementSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def _select_path(config_path: Path | str | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    return DEFAULT_CONFIG_PATH


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Explicit settings file.  Defaults to ``LEDGER_CONFIG``
            or the packaged ``defaults.yaml``.

    Returns:
        A frozen ``LedgerSettings`` tree.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If a value fails validation.
    """
    path = _select_path(config_path)
    settings = parse_settings(load_yaml_file(path), source=str(path))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        settings = dataclasses.replace(
            settings,
            database=dataclasses.replace(settings.database, url=database_url),
        )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": settings.source,
            "checksum": settings.checksum,
            "database_url_overridden": bool(database_url),
            "retry_attempts": settings.retry.attempts,
        },
    )
    return settings


__all__ = [
    "AlertSettings",
    "DatabaseSettings",
    "LedgerSettings",
    "RetrySettings",
    "SettlementSettings",
    "get_active_settings",
]
