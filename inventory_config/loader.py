"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a ``LedgerConfig``.

File format::

    ledger:
      receipt_prefix: "RCP-"
      return_window_hours: 48
      return_disposition: original_batch

A document without the ``ledger`` key is read as the ledger mapping itself.
An empty file yields the defaults.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import LedgerConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict (empty file -> {})."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    section = data["ledger"] if "ledger" in data else data
    if section is None:
        section = {}
    return LedgerConfig.from_dict(section)


def load_config(path: str | Path) -> LedgerConfig:
    """Load and validate a ledger configuration file."""
    return parse_ledger_config(load_yaml_file(Path(path)))


def compute_checksum(config: LedgerConfig) -> str:
    """Deterministic SHA-256 of the effective configuration."""
    canonical = json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
