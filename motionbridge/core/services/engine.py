"""
TransformationEngine - evaluates a rule set against one frame of inputs.

Key behaviors:
- Environment seeded with the frame's inputs plus every rule at its default
- Up to max_evaluation_iterations passes over the rules in snapshot order;
  each result is written back so later rules (and later passes) see it
- A failing rule takes its default value for that pass and gets one
  Evaluation diagnostic per call, the other rules carry on
- Stops early once no value that another rule reads has changed
- Every successful result goes through normalize -> curve -> denormalize

Invariants:
- evaluate() never raises for bad rules or bad inputs
- No state is kept between calls; the snapshot is only read
- Cycles are not detected, the iteration cap alone bounds the work
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field

from motionbridge.core.services.expressions import ExpressionEvaluationError
from motionbridge.domain.curves import IDENTITY, CurveEvaluationError, evaluate_curve
from motionbridge.domain.entities import (
    DiagnosticKind,
    RuleDiagnostic,
    RuleSetSnapshot,
    TransformationRule,
)

logger = logging.getLogger(__name__)

# --- Configuration ---


@dataclass(frozen=True)
class EngineConfig:
    """Evaluation engine configuration."""

    max_evaluation_iterations: int = 10
    convergence_tolerance: float = 1e-9

    def __post_init__(self) -> None:
        if self.max_evaluation_iterations < 1:
            raise ValueError(
                f"max_evaluation_iterations must be >= 1, got {self.max_evaluation_iterations}"
            )
        if not self.convergence_tolerance >= 0.0:
            raise ValueError(
                f"convergence_tolerance must be >= 0, got {self.convergence_tolerance}"
            )


DEFAULT_CONFIG = EngineConfig()


# --- Result ---


@dataclass(frozen=True)
class EvaluationResult:
    """Outputs of one evaluation call."""

    values: dict[str, float] = field(default_factory=dict)
    diagnostics: tuple[RuleDiagnostic, ...] = ()
    iterations: int = 0
    converged: bool = True


# --- Normalize -> Curve -> Denormalize ---


def shape_value(rule: TransformationRule, raw_value: float) -> float:
    """
    Map a raw expression result through the rule's range and curve.

    A degenerate range (min == max) feeds t = 0.5 to the curve, which then
    denormalizes back to min. Values outside the range are clamped in
    normalized space before the curve is applied.

    Raises:
        CurveEvaluationError: If the curve cannot be evaluated.
    """
    lo, hi = rule.input_min, rule.input_max
    span = hi - lo

    if span == 0.0:
        t = 0.5
    else:
        t = min(1.0, max(0.0, (raw_value - lo) / span))

    curve_out = evaluate_curve(rule.curve or IDENTITY, t)
    return lo + curve_out * span


# --- Engine ---


class TransformationEngine:
    """
    Bounded fixed-point evaluator for transformation rules.

    Synchronous and lock-free: call it once per tracking frame with the
    snapshot currently held by the caller.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self._config = config

    @property
    def config(self) -> EngineConfig:
        return self._config

    def evaluate(
        self,
        snapshot: RuleSetSnapshot,
        inputs: Mapping[str, float],
    ) -> EvaluationResult:
        """
        Evaluate every valid rule in the snapshot against a frame of inputs.

        Args:
            snapshot: Rule set to evaluate (read only).
            inputs: Raw tracking values by name.

        Returns:
            EvaluationResult with one value per rule, in rule order, and any
            Evaluation diagnostics raised during the call.
        """
        rules = snapshot.valid_rules
        if not rules:
            return EvaluationResult()

        environment = _seed_environment(inputs, rules)
        values = {rule.name: rule.default_value for rule in rules}
        failures: dict[str, RuleDiagnostic] = {}

        # Only rule names that some expression reads can affect another pass
        rule_names = set(values)
        watched = {
            name
            for rule in rules
            for name in rule.expression.referenced_names
            if name in rule_names
        }

        tolerance = self._config.convergence_tolerance
        iterations = 0
        converged = False

        while iterations < self._config.max_evaluation_iterations:
            iterations += 1
            previous = dict(values)

            for rule in rules:
                value = self._evaluate_rule(rule, environment, failures)
                environment[rule.name] = value
                values[rule.name] = value

            changed = {
                name
                for name, value in values.items()
                if abs(value - previous[name]) > tolerance
            }
            if not changed & watched:
                converged = True
                break

        if not converged:
            logger.debug(
                "Rule evaluation stopped at iteration cap (%d) without converging",
                iterations,
            )

        return EvaluationResult(
            values=values,
            diagnostics=tuple(failures.values()),
            iterations=iterations,
            converged=converged,
        )

    def _evaluate_rule(
        self,
        rule: TransformationRule,
        environment: dict[str, float],
        failures: dict[str, RuleDiagnostic],
    ) -> float:
        try:
            raw_value = rule.expression.evaluate(environment)
            return shape_value(rule, raw_value)
        except (ExpressionEvaluationError, CurveEvaluationError) as e:
            if rule.name not in failures:
                logger.debug("Error evaluating rule '%s': %s", rule.name, e)
                failures[rule.name] = RuleDiagnostic(
                    rule_name=rule.name,
                    expression_text=rule.expression_text,
                    message=f"Error evaluating rule '{rule.name}': {e}",
                    kind=DiagnosticKind.EVALUATION,
                )
            return rule.default_value


def _seed_environment(
    inputs: Mapping[str, float],
    rules: tuple[TransformationRule, ...],
) -> dict[str, float]:
    environment: dict[str, float] = {}
    for name, value in inputs.items():
        if isinstance(value, bool) or not isinstance(value, int | float):
            logger.debug("Ignoring non-numeric input '%s': %r", name, value)
            continue
        if not math.isfinite(value):
            logger.debug("Ignoring non-finite input '%s': %r", name, value)
            continue
        environment[name] = float(value)

    # Rule names shadow inputs with the same name
    for rule in rules:
        environment[rule.name] = rule.default_value
    return environment
