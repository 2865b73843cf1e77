"""
Rule-file entry schema.

One RuleFileEntry per element of the rule source. Curves are tagged by a
"type" discriminator or given as a flat coordinate array.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from motionbridge.domain.curves import (
    IDENTITY,
    BezierCurve,
    ControlPoint,
    CurveDefinition,
    IdentityCurve,
)
from motionbridge.domain.entities import RuleDefinition

IDENTITY_TYPE_NAMES = {"linearinterpolation", "linear", "identity"}
BEZIER_TYPE_NAMES = {"bezierinterpolation", "bezier"}


class CurveFormatError(ValueError):
    """Raised when a curve payload cannot be decoded."""


# --- Curve Decoding ---


def _as_number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise CurveFormatError(f"Expected number in {where}, got {value!r}")
    try:
        return float(value)
    except OverflowError as e:
        raise CurveFormatError(f"Number in {where} is out of range: {e}") from e


def _points_from_flat(values: list[Any], where: str) -> tuple[ControlPoint, ...]:
    numbers = [_as_number(v, where) for v in values]
    if len(numbers) % 2 != 0:
        raise CurveFormatError(
            f"{where} must have an even number of values "
            f"(pairs of x,y coordinates), got {len(numbers)}"
        )
    return tuple(ControlPoint(numbers[i], numbers[i + 1]) for i in range(0, len(numbers), 2))


def _point_from_item(item: Any, where: str) -> ControlPoint:
    if isinstance(item, dict):
        if "x" not in item or "y" not in item:
            raise CurveFormatError(f"Control point in {where} needs 'x' and 'y'")
        return ControlPoint(_as_number(item["x"], where), _as_number(item["y"], where))
    if isinstance(item, list | tuple) and len(item) == 2:
        return ControlPoint(_as_number(item[0], where), _as_number(item[1], where))
    raise CurveFormatError(f"Unrecognized control point in {where}: {item!r}")


def _decode_points(values: Any, where: str) -> tuple[ControlPoint, ...]:
    if not isinstance(values, list):
        raise CurveFormatError(f"{where} must be an array")
    if all(not isinstance(v, dict | list | tuple) for v in values):
        return _points_from_flat(values, where)
    return tuple(_point_from_item(item, where) for item in values)


def decode_curve(raw: Any) -> CurveDefinition | None:
    """
    Decode a curve payload from the rule file.

    Accepts None, a flat [x1, y1, x2, y2, ...] array, or an object with a
    "type" discriminator (LinearInterpolation / BezierInterpolation).

    Raises:
        CurveFormatError: If the payload shape is not recognized.
    """
    if raw is None:
        return None
    if isinstance(raw, IdentityCurve | BezierCurve):
        return raw
    if isinstance(raw, list):
        return BezierCurve(control_points=_decode_points(raw, "Bezier control points array"))
    if not isinstance(raw, dict):
        raise CurveFormatError(f"Expected array or object for interpolation, got {raw!r}")

    type_name = raw.get("type")
    if not isinstance(type_name, str) or not type_name.strip():
        raise CurveFormatError("Missing 'type' property in interpolation definition")

    key = type_name.strip().lower()
    if key in IDENTITY_TYPE_NAMES:
        return IDENTITY
    if key in BEZIER_TYPE_NAMES:
        points = raw.get("controlPoints", raw.get("control_points"))
        if points is None:
            raise CurveFormatError("Missing 'controlPoints' property")
        return BezierCurve(control_points=_decode_points(points, "controlPoints"))

    raise CurveFormatError(
        f"Unknown interpolation type '{type_name}'. "
        "Available types: LinearInterpolation, BezierInterpolation"
    )


def encode_curve(curve: CurveDefinition | None) -> dict[str, Any] | None:
    """Encode a curve in the tagged object format."""
    if curve is None:
        return None
    if isinstance(curve, BezierCurve):
        flat: list[float] = []
        for point in curve.control_points:
            flat.extend((point.x, point.y))
        return {"type": "BezierInterpolation", "controlPoints": flat}
    return {"type": "LinearInterpolation"}


# --- Entry Schema ---


class RuleFileEntry(BaseModel):
    name: str
    func: str = Field(default="", validation_alias=AliasChoices("func", "expression"))
    min: float = Field(default=0.0, validation_alias=AliasChoices("min", "input_min"))
    max: float = Field(default=0.0, validation_alias=AliasChoices("max", "input_max"))
    default_value: float = Field(
        default=0.0,
        validation_alias=AliasChoices("defaultValue", "default_value"),
        serialization_alias="defaultValue",
    )
    interpolation: Any = Field(
        default=None, validation_alias=AliasChoices("interpolation", "curve")
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("func", mode="before")
    @classmethod
    def _expression_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        # YAML turns a bare constant expression like `func: 0.5` into a number
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("min", "max", "default_value", mode="before")
    @classmethod
    def _in_float_range(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return float(value)
            except OverflowError as e:
                raise ValueError(f"number is out of range: {e}") from e
        return value

    @field_validator("min", "max", "default_value")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value

    @field_validator("interpolation", mode="plain")
    @classmethod
    def _curve(cls, value: Any) -> CurveDefinition | None:
        return decode_curve(value)

    def to_definition(self) -> RuleDefinition:
        return RuleDefinition(
            name=self.name,
            expression=self.func,
            input_min=self.min,
            input_max=self.max,
            default_value=self.default_value,
            curve=self.interpolation,
        )

    @classmethod
    def from_definition(cls, definition: RuleDefinition) -> RuleFileEntry:
        return cls(
            name=definition.name,
            func=definition.expression,
            min=definition.input_min,
            max=definition.input_max,
            default_value=definition.default_value,
            interpolation=definition.curve,
        )

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "name": self.name,
            "func": self.func,
            "min": self.min,
            "max": self.max,
            "defaultValue": self.default_value,
        }
        curve = encode_curve(self.interpolation)
        if curve is not None:
            document["interpolation"] = curve
        return document
