"""
stock_config -- single public entrypoint for ledger configuration.

``get_active_config()`` returns the validated ``LedgerConfig``; services
receive it by constructor injection and never read files themselves.
"""

from __future__ import annotations

from pathlib import Path

from stock_config.loader import load_config
from stock_config.schema import LedgerConfig

# Default configuration set shipped with the package
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """Load the configuration at ``path``, or the default set."""
    return load_config(path if path is not None else DEFAULT_CONFIG_PATH)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LedgerConfig",
    "get_active_config",
    "load_config",
]
