"""
Rule validator - turns a raw RuleDefinition into a compiled rule.

Checks run in order and stop at the first failure:
1. Expression text must not be empty or whitespace
2. Expression must compile (syntax, supported nodes, known functions)
3. Bounds must be finite with input_min <= input_max and a finite span
4. Curve, if present, must pass curve validation

Pure function - no I/O, no shared state - so the repository can re-run it
for every rule on each load and hot reload.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from typing import Any

from motionbridge.core.services.expressions import ExpressionSyntaxError, compile_expression
from motionbridge.domain.curves import CurveValidationError, describe_curve, validate_curve
from motionbridge.domain.entities import (
    DiagnosticKind,
    RuleDefinition,
    RuleDiagnostic,
    TransformationRule,
)


def _failure(definition: RuleDefinition, message: str) -> RuleDiagnostic:
    return RuleDiagnostic(
        rule_name=definition.name,
        expression_text=definition.expression or "",
        message=message,
        kind=DiagnosticKind.VALIDATION,
    )


def validate_definition(
    definition: RuleDefinition,
    *,
    functions: Mapping[str, Callable[..., Any]] | None = None,
) -> TransformationRule | RuleDiagnostic:
    """
    Validate and compile one rule definition.

    Args:
        definition: Raw definition from the rule source.
        functions: Optional function whitelist for the expression compiler.

    Returns:
        TransformationRule on success, otherwise a Validation RuleDiagnostic
        describing the first problem found.
    """
    name = definition.name

    if not definition.expression or not definition.expression.strip():
        return _failure(definition, f"Rule '{name}' has an empty expression")

    try:
        compiled = compile_expression(definition.expression, functions)
    except ExpressionSyntaxError as e:
        return _failure(definition, f"Syntax error in rule '{name}': {e}")

    bounds = (definition.input_min, definition.input_max, definition.default_value)
    if not all(math.isfinite(value) for value in bounds):
        return _failure(definition, f"Rule '{name}' has non-finite min, max or default value")

    if definition.input_min > definition.input_max:
        return _failure(
            definition,
            f"Rule '{name}' has Min value ({definition.input_min}) "
            f"greater than Max value ({definition.input_max})",
        )

    # Normalization divides by the span
    if not math.isfinite(definition.input_max - definition.input_min):
        return _failure(definition, f"Rule '{name}' has a Min to Max range that is too large")

    if definition.curve is not None:
        try:
            validate_curve(definition.curve)
        except CurveValidationError as e:
            return _failure(
                definition,
                f"Rule '{name}' has invalid interpolation "
                f"({describe_curve(definition.curve)}, {e.code}): {e.message}",
            )

    return TransformationRule(
        name=name,
        expression=compiled,
        expression_text=definition.expression,
        input_min=definition.input_min,
        input_max=definition.input_max,
        default_value=definition.default_value,
        curve=definition.curve,
    )


def partition_definitions(
    definitions: list[RuleDefinition],
    *,
    functions: Mapping[str, Callable[..., Any]] | None = None,
) -> tuple[list[TransformationRule], list[RuleDiagnostic]]:
    """
    Validate a batch of definitions.

    Duplicate names keep the first valid occurrence; later ones are
    reported as Validation diagnostics.

    Returns:
        (valid_rules, diagnostics) in source order.
    """
    valid: list[TransformationRule] = []
    diagnostics: list[RuleDiagnostic] = []
    seen: set[str] = set()

    for definition in definitions:
        if not definition.name or not definition.name.strip():
            diagnostics.append(_failure(definition, "Rule has an empty name"))
            continue

        if definition.name in seen:
            diagnostics.append(
                _failure(definition, f"Duplicate rule name '{definition.name}'")
            )
            continue

        result = validate_definition(definition, functions=functions)
        if isinstance(result, RuleDiagnostic):
            diagnostics.append(result)
        else:
            seen.add(result.name)
            valid.append(result)

    return valid, diagnostics
