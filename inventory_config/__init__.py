"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` returns the ``LedgerConfig`` the services run
    with: the YAML file named by the ``INVENTORY_CONFIG`` environment
    variable, or the defaults when it is unset.  ``database_url()`` reads
    ``DATABASE_URL``.  ``init_engine()`` opens the database with the SQLite
    busy timeout tied to ``unit_of_work_timeout_seconds``.

Architecture position:
    Configuration.  Sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from here.

Audit relevance:
    Every ``get_active_config()`` call logs ``ledger_config_loaded`` with the
    source and checksum of the effective configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from inventory_config.loader import compute_checksum, load_config
from inventory_config.schema import LedgerConfig
from inventory_kernel.db.engine import init_engine_from_url
from inventory_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "INVENTORY_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///inventory.db"


def get_active_config(path: str | Path | None = None) -> LedgerConfig:
    """
    The runtime configuration entrypoint.

    Args:
        path: Explicit YAML path.  Defaults to $INVENTORY_CONFIG; when that
            is unset too, the built-in defaults are returned.

    Raises:
        FileNotFoundError: the configured file does not exist.
        ValueError: the file fails validation.
    """
    source = path or os.environ.get(CONFIG_ENV_VAR)
    if source:
        config = load_config(source)
    else:
        config = LedgerConfig.with_defaults()
    logger.info(
        "ledger_config_loaded",
        extra={
            "source": str(source) if source else "defaults",
            "checksum": compute_checksum(config),
        },
    )
    return config


def database_url() -> str:
    return os.environ.get(DATABASE_URL_ENV_VAR) or DEFAULT_DATABASE_URL


def init_engine(config: LedgerConfig, url: str | None = None, **engine_kwargs):
    """
    Initialize the kernel engine for ``config``.

    A SQLite writer blocked on the database lock gives up after the unit of
    work budget rather than the driver default, so a stuck sale surfaces as
    UnitOfWorkTimeoutError within the configured limit.
    """
    engine_kwargs.setdefault("sqlite_busy_timeout_seconds", config.unit_of_work_timeout_seconds)
    return init_engine_from_url(url or database_url(), **engine_kwargs)


__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "LedgerConfig",
    "database_url",
    "get_active_config",
    "init_engine",
    "load_config",
]
