"""
Transform component input/output models.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from motionbridge.core.services.extremums import Extremum
from motionbridge.domain.entities import RuleDiagnostic


class ServiceStatus(str, Enum):
    """Health of the loaded rule set."""

    NEVER_LOADED = "never_loaded"
    ALL_RULES_VALID = "all_rules_valid"
    RULES_PARTIALLY_VALID = "rules_partially_valid"
    NO_VALID_RULES = "no_valid_rules"
    CONFIG_ERROR_CACHED = "config_error_cached"
    CONFIG_ERROR = "config_error"


@dataclass(frozen=True)
class TransformInput:
    """One frame of tracking values."""

    values: Mapping[str, float]
    face_found: bool = True


@dataclass(frozen=True)
class TransformOutput:
    """Avatar parameter values for one frame."""

    face_found: bool
    values: dict[str, float] = field(default_factory=dict)
    diagnostics: tuple[RuleDiagnostic, ...] = ()
    extremums: dict[str, Extremum] = field(default_factory=dict)
    iterations: int = 0
    converged: bool = True


@dataclass(frozen=True)
class ServiceStats:
    """Point-in-time status and counters of a TransformationService."""

    status: ServiceStatus
    counters: dict[str, int]
    rules_path: Path
    is_up_to_date: bool
    last_error: str | None = None
    invalid_rules: tuple[RuleDiagnostic, ...] = ()
