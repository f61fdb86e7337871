"""Options loader for the DollarSign engine.

Defaults come from config/config.yaml when it exists, otherwise from the
DollarSignOptions model. Options are validated at load time using Pydantic.
Typos and invalid values fail fast with clear error messages.

Usage:
    from dollarsign.config import load_options, get_options

    # Load and validate (call once at startup)
    load_options("config/config.yaml")

    # Typed options object
    options = get_options()
    options.timeout_ms
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .config_schema import DollarSignOptions, load_validated_options, validate_options_dict

# Global options instance
_options: DollarSignOptions | None = None

# Default config path
DEFAULT_CONFIG_PATH: Path = Path(__file__).parent.parent / "config" / "config.yaml"


def load_options(config_path: str | Path | None = None) -> DollarSignOptions:
    """Load and validate options from a YAML file.

    Args:
        config_path: Path to config file. Defaults to config/config.yaml.

    Returns:
        Validated DollarSignOptions (also installed as the process default).

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        pydantic.ValidationError: If the options are invalid.
    """
    global _options

    path: Path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if config_path is None and not path.exists():
        _options = DollarSignOptions()
    else:
        _options = load_validated_options(path)
    return _options


def get_options() -> DollarSignOptions:
    """Get the process default options. Loads the default file if not already loaded."""
    global _options
    if _options is None:
        load_options()
    if _options is None:
        raise RuntimeError("Options failed to load. Call load_options() first.")
    return _options


def set_options(options: DollarSignOptions | dict[str, Any]) -> DollarSignOptions:
    """Replace the process default options (a dict is validated first)."""
    global _options
    _options = options if isinstance(options, DollarSignOptions) else validate_options_dict(options)
    return _options


def reset_options() -> None:
    """Forget loaded options; the next get_options() reloads them."""
    global _options
    _options = None
