"""
mdm_config -- single public entrypoint for master data kernel settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads the YAML file or
    the ``MDM_*`` environment variables directly.

Architecture position:
    Configuration.  Sits above ``mdm_kernel`` and below ``mdm_services``.
    The kernel MUST NEVER import from ``mdm_config``; ``bridges`` translates
    settings into kernel value objects.

Failure modes:
    - ``FileNotFoundError`` -- explicit settings path does not exist.
    - ``ValueError`` -- unknown keys in a settings section.

Audit relevance:
    Every successful ``get_active_settings()`` call emits an
    ``MDM_CONFIG_TRACE`` log entry naming the source file and the effective
    database backend, so a run can be tied to the settings that governed it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from mdm_config.loader import load_settings
from mdm_config.schema import MdmSettings

_logger = logging.getLogger("mdm_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "defaults.yaml"

ENV_DATABASE_URL = "MDM_DATABASE_URL"
ENV_LOG_LEVEL = "MDM_LOG_LEVEL"


def get_active_settings(path: Path | None = None) -> MdmSettings:
    """
    Load settings from ``path`` (default: the packaged ``defaults.yaml``)
    and apply environment overrides.
    """
    source = path or _DEFAULT_SETTINGS_FILE
    settings = load_settings(source)

    database_url = os.environ.get(ENV_DATABASE_URL)
    if database_url:
        settings = replace(settings, database=replace(settings.database, url=database_url))

    log_level = os.environ.get(ENV_LOG_LEVEL)
    if log_level:
        settings = replace(settings, logging=replace(settings.logging, level=log_level.upper()))

    _logger.info(
        "MDM_CONFIG_TRACE",
        extra={
            "trace_type": "MDM_CONFIG_TRACE",
            "settings_file": str(source),
            "database_backend": settings.database.url.split(":", 1)[0],
            "database_url_overridden": bool(database_url),
            "log_level": settings.logging.level,
        },
    )
    return settings


__all__ = ["MdmSettings", "get_active_settings", "ENV_DATABASE_URL", "ENV_LOG_LEVEL"]
