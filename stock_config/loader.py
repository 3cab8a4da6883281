"""
Configuration Loader (``stock_config.loader``).

Loads a YAML configuration file and parses its ``ledger:`` mapping into a
``LedgerConfig``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``ledger`` section  -> ``KeyError``.
* Unknown keys or invalid values  -> ``KeyError`` / ``ValueError`` from
  ``LedgerConfig``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import LedgerConfig
from stock_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    """Build a ``LedgerConfig`` from a parsed YAML document."""
    if "ledger" not in data:
        raise KeyError("Configuration has no 'ledger' section")
    return LedgerConfig.from_dict(dict(data["ledger"] or {}))


def load_config(path: Path | str) -> LedgerConfig:
    """Load and validate the ledger configuration stored at ``path``."""
    path = Path(path)
    data = load_yaml_file(path)
    config = parse_ledger_config(data)
    logger.info(
        "ledger_config_loaded",
        extra={"path": str(path), "checksum": compute_checksum(data)},
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
