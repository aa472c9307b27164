"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime, through
    ``get_active_settings()``.  Returns a frozen ``LedgerSettings``.
    YAML parsing is internal to this package.

Architecture position:
    Configuration.  Sits above ``ledger_kernel``: the kernel MUST NEVER
    import from ``ledger_config``.  ``ledger_config.bridges`` translates
    settings into kernel rows and kernel constructor arguments.

Invariants enforced:
    - Single entrypoint: runtime settings flow through ``get_active_settings()``.
    - The ``LEDGER_DATABASE_URL`` environment variable, when set, overrides
      ``database.url`` and is the only environment variable consulted.
    - Deterministic: the same file always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing keys or invalid values.

Audit relevance:
    Every successful call emits a ``ledger_settings_loaded`` log entry
    with the source path and checksum of the settings in force.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

DATABASE_URL_ENV = "LEDGER_DATABASE_URL"


def get_active_settings(config_path: Path | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Contract:
        Reads ``config_path`` (default: the packaged ``defaults/ledger.yaml``),
        validates it, applies the database URL override, and returns the
        frozen settings.

    Non-goals:
        - Does NOT cache; callers hold the returned settings.
        - Does NOT touch the database; see ``bridges.seed_reference_data``.

    Raises:
        FileNotFoundError: ``config_path`` does not exist.
        KeyError: A required key is missing.
        ValueError: A value failed validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(path))

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        settings = replace(settings, database=replace(settings.database, url=override))

    _logger.info(
        "ledger_settings_loaded",
        extra={
            "config_path": str(path),
            "checksum": settings.checksum,
            "voucher_type_count": len(settings.voucher_types),
            "document_type_count": len(settings.document_types),
            "database_url_overridden": bool(override),
        },
    )
    return settings


__all__ = [
    "DATABASE_URL_ENV",
    "DEFAULT_SETTINGS_PATH",
    "LedgerSettings",
    "get_active_settings",
]
