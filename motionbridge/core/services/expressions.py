"""
Arithmetic expression compiler for transformation rules.

Expressions are parsed with the ast module, checked against a whitelist of
node types and function names, then compiled to a code object once.
Evaluation runs the code object against a name->value environment with no
builtins available.

Key behaviors:
- Syntax errors, unsupported syntax and unknown functions fail at compile time
- Unknown variables and arithmetic faults fail at evaluation time
- Results are coerced to float; non-numeric and non-finite results are faults
- referenced_names lists every variable the expression reads
"""

from __future__ import annotations

import ast
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import CodeType
from typing import Any

# --- Errors ---


class ExpressionSyntaxError(ValueError):
    """Raised when an expression cannot be compiled."""


class ExpressionEvaluationError(ValueError):
    """Raised when a compiled expression fails against an environment."""


# --- Function Whitelist ---


def _sign(value: float) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
    "pow": math.pow,
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
    "sign": _sign,
    "trunc": math.trunc,
    "clamp": _clamp,
    "lerp": _lerp,
}

# Capitalized names used by rule files written for NCalc
_NCALC_ALIASES = {
    "Abs": "abs",
    "Min": "min",
    "Max": "max",
    "Pow": "pow",
    "Sqrt": "sqrt",
    "Sin": "sin",
    "Cos": "cos",
    "Tan": "tan",
    "Asin": "asin",
    "Acos": "acos",
    "Atan": "atan",
    "Atan2": "atan2",
    "Exp": "exp",
    "Log": "log",
    "Log10": "log10",
    "Floor": "floor",
    "Ceiling": "ceil",
    "Round": "round",
    "Sign": "sign",
    "Truncate": "trunc",
}

DEFAULT_FUNCTIONS: Mapping[str, Callable[..., Any]] = {
    **_FUNCTIONS,
    **{alias: _FUNCTIONS[target] for alias, target in _NCALC_ALIASES.items()},
}

ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.UAdd,
    ast.USub,
    ast.Not,
    ast.And,
    ast.Or,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
)


# --- Compiled Expression ---


@dataclass(frozen=True)
class CompiledExpression:
    """A validated, re-evaluable expression."""

    source: str
    code: CodeType = field(repr=False, compare=False)
    referenced_names: frozenset[str] = frozenset()
    functions: Mapping[str, Callable[..., Any]] = field(
        default_factory=lambda: DEFAULT_FUNCTIONS, repr=False, compare=False
    )

    def evaluate(self, environment: Mapping[str, float]) -> float:
        """
        Evaluate against an environment of variable values.

        Raises:
            ExpressionEvaluationError: On unknown variables, arithmetic
                faults, non-numeric or non-finite results.
        """
        missing = self.referenced_names.difference(environment)
        if missing:
            names = ", ".join(sorted(missing))
            raise ExpressionEvaluationError(f"Unknown variable(s): {names}")

        try:
            result = eval(self.code, {"__builtins__": {}, **self.functions}, dict(environment))
        except ZeroDivisionError as e:
            raise ExpressionEvaluationError(f"Division by zero: {e}") from e
        except OverflowError as e:
            raise ExpressionEvaluationError(f"Numeric overflow: {e}") from e
        except (ValueError, TypeError, NameError) as e:
            raise ExpressionEvaluationError(str(e)) from e

        return _coerce_result(result)


def _coerce_result(result: Any) -> float:
    if isinstance(result, bool):
        return 1.0 if result else 0.0
    if not isinstance(result, int | float):
        raise ExpressionEvaluationError(
            f"Expression produced a non-numeric result: {type(result).__name__}"
        )
    try:
        value = float(result)
    except OverflowError as e:
        raise ExpressionEvaluationError(f"Numeric overflow: {e}") from e
    if not math.isfinite(value):
        raise ExpressionEvaluationError(f"Expression produced a non-finite result: {value}")
    return value


# --- Compilation ---


class _ExpressionChecker(ast.NodeVisitor):
    """Collects variable names and rejects anything outside the whitelist."""

    def __init__(self, function_names: set[str]) -> None:
        self.function_names = function_names
        self.referenced_names: set[str] = set()

    def generic_visit(self, node: ast.AST) -> None:
        if not isinstance(node, ALLOWED_NODES):
            raise ExpressionSyntaxError(f"Unsupported syntax: {type(node).__name__}")
        super().generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if not isinstance(node.value, bool | int | float):
            raise ExpressionSyntaxError(f"Unsupported literal: {node.value!r}")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            raise ExpressionSyntaxError(f"Unsupported name: {node.id}")
        self.referenced_names.add(node.id)

    def visit_Call(self, node: ast.Call) -> None:
        if not isinstance(node.func, ast.Name):
            raise ExpressionSyntaxError("Only direct function calls are supported")
        if node.func.id not in self.function_names:
            raise ExpressionSyntaxError(f"Undefined function: {node.func.id}")
        if node.keywords:
            raise ExpressionSyntaxError(f"Keyword arguments are not supported in {node.func.id}()")
        for arg in node.args:
            self.visit(arg)


class _FloatLiterals(ast.NodeTransformer):
    """Integer literals become floats so `**` cannot build huge integers."""

    def visit_Constant(self, node: ast.Constant) -> ast.AST:
        if isinstance(node.value, int) and not isinstance(node.value, bool):
            try:
                value = float(node.value)
            except OverflowError as e:
                raise ExpressionSyntaxError(f"Integer literal too large: {e}") from e
            return ast.copy_location(ast.Constant(value=value), node)
        return node


def compile_expression(
    source: str,
    functions: Mapping[str, Callable[..., Any]] | None = None,
) -> CompiledExpression:
    """
    Compile expression text into a CompiledExpression.

    Args:
        source: Expression text, e.g. "eyeBlinkLeft * 100".
        functions: Function whitelist. Uses DEFAULT_FUNCTIONS if None.

    Returns:
        CompiledExpression ready for evaluation.

    Raises:
        ExpressionSyntaxError: On syntax errors, unsupported syntax or
            calls to functions outside the whitelist.
    """
    resolved = DEFAULT_FUNCTIONS if functions is None else functions

    checker = _ExpressionChecker(set(resolved))
    try:
        tree = ast.parse(source.strip(), mode="eval")
        checker.visit(tree)
        tree = ast.fix_missing_locations(_FloatLiterals().visit(tree))
        code = compile(tree, "<rule>", "eval")
    except SyntaxError as e:
        detail = e.msg if e.offset is None else f"{e.msg} at column {e.offset}"
        raise ExpressionSyntaxError(f"Invalid syntax: {detail}") from e
    except (RecursionError, MemoryError) as e:
        raise ExpressionSyntaxError("Expression is too complex to compile") from e

    return CompiledExpression(
        source=source,
        code=code,
        referenced_names=frozenset(checker.referenced_names),
        functions=resolved,
    )
