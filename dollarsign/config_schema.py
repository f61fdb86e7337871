"""Pydantic schema for engine options.

Options are validated when constructed. Typos and invalid values fail fast
with clear error messages.

Usage:
    from dollarsign.config_schema import DollarSignOptions, SecurityLevel

    options = DollarSignOptions(security_level=SecurityLevel.STRICT, throw_on_error=True)
    per_call = options.model_copy(update={"support_dollar_sign_syntax": True})
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .formatting.culture import CultureInfo, get_culture


# =============================================================================
# BASE MODEL WITH STRICT VALIDATION
# =============================================================================

class StrictModel(BaseModel):
    """Base model that rejects unknown fields (catches typos)."""

    model_config = ConfigDict(extra="forbid")


class SecurityLevel(str, Enum):
    """Security levels for expression validation.

    STRICT ⊂ MODERATE ⊂ PERMISSIVE in terms of what is accepted.
    """

    STRICT = "strict"  # Arithmetic, identifiers, literals, ternary; no calls
    MODERATE = "moderate"  # Collection ops allowed, reflection blocked
    PERMISSIVE = "permissive"  # Baseline checks only


VariableResolver = Callable[[str], Any]
ErrorHandler = Callable[[str, Exception], Any]


# =============================================================================
# ENGINE OPTIONS
# =============================================================================

class DollarSignOptions(StrictModel):
    """Options controlling template evaluation.

    Callable options (variable_resolver, error_handler) and global_data are
    runtime-only and never read from YAML.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, arbitrary_types_allowed=True)

    throw_on_error: bool = Field(
        default=False,
        description="Surface evaluation failures as errors instead of empty-string substitution",
    )
    throw_on_missing_parameter: bool = Field(
        default=False,
        description="Raise when a variable is missing instead of substituting an empty string",
    )
    treat_undefined_variables_in_simple_expressions_as_empty: bool = Field(
        default=True,
        description="Substitute '' for an undefined bare identifier when not throwing",
    )
    enable_debug_logging: bool = Field(
        default=False,
        description="Emit verbose evaluation traces at DEBUG level",
    )
    additional_namespaces: list[str] = Field(
        default_factory=list,
        description="Importable module names exposed as static roots (e.g. 'statistics')",
    )
    strict_parameter_access: bool = Field(
        default=False,
        description="Accessing a missing member raises instead of yielding null",
    )
    culture: str = Field(
        default="en-US",
        description="Culture name used for formatting (e.g. 'en-US', 'de-DE', 'invariant')",
    )
    variable_resolver: VariableResolver | None = Field(
        default=None,
        exclude=True,
        description="Callback consulted before any other resolution strategy",
    )
    support_dollar_sign_syntax: bool = Field(
        default=False,
        description="Evaluate ${expr} and leave {expr} verbatim",
    )
    use_cache: bool = Field(
        default=True,
        validation_alias=AliasChoices("use_cache", "enable_caching"),
        description="Cache compiled expressions",
    )
    security_level: SecurityLevel = Field(
        default=SecurityLevel.MODERATE,
        description="Expression validation strictness",
    )
    error_handler: ErrorHandler | None = Field(
        default=None,
        exclude=True,
        description="(expression, exception) -> substitute text; None falls back to default policy",
    )
    global_data: Any = Field(
        default=None,
        exclude=True,
        description="Process-wide defaults merged under per-call variables",
    )
    timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="Per-evaluation timeout in milliseconds",
    )
    cache_size: int = Field(
        default=1000,
        gt=0,
        description="Maximum number of compiled units kept by an engine",
    )
    cache_ttl_seconds: float = Field(
        default=3600.0,
        ge=0,
        description="Time-to-live for compiled units (0 disables expiry)",
    )

    @field_validator("culture")
    @classmethod
    def validate_culture(cls, v: str) -> str:
        """Culture must be one of the known culture tables."""
        get_culture(v)
        return v

    @field_validator("additional_namespaces")
    @classmethod
    def validate_namespaces(cls, v: list[str]) -> list[str]:
        """Namespace names must be dotted identifiers."""
        for name in v:
            parts = name.split(".")
            if not all(part.isidentifier() for part in parts):
                raise ValueError(f"Invalid namespace name: {name!r}")
        return v

    @property
    def culture_info(self) -> CultureInfo:
        """Resolved culture table for formatting."""
        return get_culture(self.culture)

    @property
    def enable_caching(self) -> bool:
        """Alias of use_cache."""
        return self.use_cache

    @property
    def throws_on_missing(self) -> bool:
        """Whether a missing variable should surface as an error."""
        return self.throw_on_error or self.throw_on_missing_parameter


def validate_options_dict(data: dict[str, Any]) -> DollarSignOptions:
    """Validate a raw options dictionary.

    Raises:
        pydantic.ValidationError: If the options are invalid.
    """
    return DollarSignOptions.model_validate(data)


def load_validated_options(path: str | Path) -> DollarSignOptions:
    """Load options from a YAML file and validate them.

    The file may hold the options at top level or under an ``engine`` key.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the options are invalid.
    """
    with open(path) as f:
        loaded: Any = yaml.safe_load(f)
    if not isinstance(loaded, dict):
        loaded = {}
    if isinstance(loaded.get("engine"), dict):
        loaded = loaded["engine"]
    return validate_options_dict(loaded)
