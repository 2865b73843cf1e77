"""
Rule model value objects.

TransformationRule is only ever built by the validator and is never
mutated afterwards. A reload produces a new RuleSetSnapshot wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from motionbridge.core.services.expressions import CompiledExpression
from motionbridge.domain.curves import CurveDefinition

# --- Enums ---


class DiagnosticKind(str, Enum):
    """Where a rule failure was detected."""

    VALIDATION = "Validation"  # load/compile time
    EVALUATION = "Evaluation"  # while computing a live frame


# --- Rule Definitions ---


@dataclass(frozen=True)
class RuleDefinition:
    """Raw rule definition as read from the rule source."""

    name: str
    expression: str
    input_min: float = 0.0
    input_max: float = 0.0
    default_value: float = 0.0
    curve: CurveDefinition | None = None


@dataclass(frozen=True)
class TransformationRule:
    """A validated, compiled transformation rule."""

    name: str
    expression: CompiledExpression = field(repr=False)
    expression_text: str
    input_min: float
    input_max: float
    default_value: float
    curve: CurveDefinition | None = None

    def to_definition(self) -> RuleDefinition:
        """Source definition this rule was compiled from."""
        return RuleDefinition(
            name=self.name,
            expression=self.expression_text,
            input_min=self.input_min,
            input_max=self.input_max,
            default_value=self.default_value,
            curve=self.curve,
        )


# --- Diagnostics ---


@dataclass(frozen=True)
class RuleDiagnostic:
    """A validation or evaluation failure for one rule."""

    rule_name: str
    expression_text: str
    message: str
    kind: DiagnosticKind


# --- Snapshot ---


@dataclass(frozen=True)
class RuleSetSnapshot:
    """Valid rules and diagnostics produced together by one load."""

    valid_rules: tuple[TransformationRule, ...] = ()
    diagnostics: tuple[RuleDiagnostic, ...] = ()
    loaded_from_fallback: bool = False
    fallback_reason: str | None = None

    @property
    def valid_count(self) -> int:
        return len(self.valid_rules)

    @property
    def invalid_count(self) -> int:
        return len(self.diagnostics)


EMPTY_SNAPSHOT = RuleSetSnapshot()


@dataclass(frozen=True)
class ParameterDefinition:
    """Host-side parameter registration derived from a rule."""

    name: str
    min: float
    max: float
    default_value: float
