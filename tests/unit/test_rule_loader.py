"""
Rule-file parsing unit tests.
"""

from __future__ import annotations

import json

import pytest

from motionbridge.domain.curves import IDENTITY, BezierCurve
from motionbridge.domain.entities import RuleDefinition
from motionbridge.rules.loader import (
    RuleEntryError,
    RuleSourceParseError,
    dump_rule_definitions,
    parse_entry,
    parse_rule_document,
)
from motionbridge.rules.models import CurveFormatError, decode_curve, encode_curve


class TestParseRuleDocument:
    """Test container-level parsing."""

    def test_json_array(self) -> None:
        entries = parse_rule_document('[{"name": "A", "func": "x"}]', "rules.json")
        assert entries == [{"name": "A", "func": "x"}]

    def test_yaml_sequence(self) -> None:
        text = "- name: A\n  func: x * 2\n  min: 0\n  max: 1\n"
        entries = parse_rule_document(text, "rules.yaml")
        assert entries[0]["func"] == "x * 2"

    def test_yaml_rules_key(self) -> None:
        text = "rules:\n  - name: A\n    func: x\n"
        assert parse_rule_document(text) == [{"name": "A", "func": "x"}]

    def test_invalid_json(self) -> None:
        with pytest.raises(RuleSourceParseError, match="JSON parsing error"):
            parse_rule_document("{ invalid json }", "rules.json")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(RuleSourceParseError, match="Invalid YAML syntax"):
            parse_rule_document("- name: [unclosed", "rules.yaml")

    def test_null_document(self) -> None:
        with pytest.raises(RuleSourceParseError, match="empty"):
            parse_rule_document("null", "rules.json")

    def test_object_instead_of_list(self) -> None:
        with pytest.raises(RuleSourceParseError, match="must contain a list"):
            parse_rule_document('{"name": "A"}', "rules.json")

    def test_deeply_nested_json(self) -> None:
        text = "[" * 100_000 + "]" * 100_000
        with pytest.raises(RuleSourceParseError, match="cannot be parsed"):
            parse_rule_document(text, "rules.json")

    def test_integer_past_digit_limit(self) -> None:
        text = '[{"name": "A", "func": "x", "max": ' + "9" * 5000 + "}]"
        with pytest.raises(RuleSourceParseError, match="cannot be parsed"):
            parse_rule_document(text, "rules.json")


class TestParseEntry:
    """Test single-entry decoding."""

    def test_original_field_names(self) -> None:
        definition = parse_entry(
            {"name": "A", "func": "x * 100", "min": 0, "max": 100, "defaultValue": 5},
            0,
        )
        assert definition == RuleDefinition(
            name="A", expression="x * 100", input_min=0.0, input_max=100.0, default_value=5.0
        )

    def test_snake_case_aliases(self) -> None:
        definition = parse_entry(
            {
                "name": "A",
                "expression": "x",
                "input_min": -1,
                "input_max": 1,
                "default_value": 0.5,
                "curve": {"type": "LinearInterpolation"},
            },
            0,
        )
        assert definition.expression == "x"
        assert definition.input_min == -1.0
        assert definition.default_value == 0.5
        assert definition.curve == IDENTITY

    def test_numeric_func_becomes_text(self) -> None:
        assert parse_entry({"name": "A", "func": 0.5}, 0).expression == "0.5"

    def test_missing_func_is_empty(self) -> None:
        assert parse_entry({"name": "A"}, 0).expression == ""

    def test_not_an_object(self) -> None:
        with pytest.raises(RuleEntryError) as exc:
            parse_entry(["A", "x"], 3)
        assert exc.value.name == "#3"

    def test_bad_number_reports_rule_name(self) -> None:
        with pytest.raises(RuleEntryError) as exc:
            parse_entry({"name": "A", "func": "x", "min": "low"}, 0)
        assert exc.value.name == "A"
        assert exc.value.expression_text == "x"
        assert exc.value.message.startswith("Rule 'A' is malformed")

    def test_missing_name(self) -> None:
        with pytest.raises(RuleEntryError) as exc:
            parse_entry({"func": "x"}, 2)
        assert exc.value.name == "#2"

    def test_odd_control_point_count(self) -> None:
        with pytest.raises(RuleEntryError, match="even number of values"):
            parse_entry({"name": "A", "func": "x", "interpolation": [0, 0, 1]}, 0)

    def test_bound_out_of_float_range(self) -> None:
        with pytest.raises(RuleEntryError, match="out of range") as exc:
            parse_entry({"name": "A", "func": "x", "max": 10**400}, 0)
        assert exc.value.name == "A"

    def test_coordinate_out_of_float_range(self) -> None:
        with pytest.raises(RuleEntryError, match="out of range"):
            parse_entry({"name": "A", "func": "x", "interpolation": [0, 0, 10**400, 1]}, 0)


class TestCurvePayloads:
    """Test curve decoding and encoding."""

    def test_flat_array_is_bezier(self) -> None:
        curve = decode_curve([0, 0, 0.5, 0.2, 1, 1])
        assert curve == BezierCurve.from_pairs([(0, 0), (0.5, 0.2), (1, 1)])

    def test_tagged_bezier_with_point_objects(self) -> None:
        curve = decode_curve(
            {
                "type": "BezierInterpolation",
                "controlPoints": [{"x": 0, "y": 0}, {"x": 1, "y": 1}],
            }
        )
        assert curve == BezierCurve.from_pairs([(0, 0), (1, 1)])

    def test_tagged_bezier_with_pairs(self) -> None:
        curve = decode_curve({"type": "bezier", "control_points": [[0, 0], [1, 1]]})
        assert curve == BezierCurve.from_pairs([(0, 0), (1, 1)])

    def test_linear_tag(self) -> None:
        assert decode_curve({"type": "LinearInterpolation"}) == IDENTITY

    def test_missing_type(self) -> None:
        with pytest.raises(CurveFormatError, match="Missing 'type'"):
            decode_curve({"controlPoints": [0, 0, 1, 1]})

    def test_unknown_type(self) -> None:
        with pytest.raises(CurveFormatError, match="Unknown interpolation type 'Spline'"):
            decode_curve({"type": "Spline"})

    def test_boolean_coordinate_rejected(self) -> None:
        with pytest.raises(CurveFormatError):
            decode_curve([0, 0, True, 1])

    def test_encode_bezier(self) -> None:
        curve = BezierCurve.from_pairs([(0, 0), (0.5, 0.2), (1, 1)])
        assert encode_curve(curve) == {
            "type": "BezierInterpolation",
            "controlPoints": [0.0, 0.0, 0.5, 0.2, 1.0, 1.0],
        }
        assert encode_curve(IDENTITY) == {"type": "LinearInterpolation"}
        assert encode_curve(None) is None


class TestDumpRuleDefinitions:
    """Test serialization back to rule-file text."""

    def test_json_dump_reparses(self) -> None:
        definitions = [
            RuleDefinition(
                name="A",
                expression="x * 2",
                input_min=0.0,
                input_max=2.0,
                default_value=1.0,
                curve=BezierCurve.from_pairs([(0, 0), (0.3, 0.6), (1, 1)]),
            ),
            RuleDefinition(name="B", expression="A + 1", input_min=0.0, input_max=5.0),
        ]
        text = dump_rule_definitions(definitions, "rules.json")
        documents = json.loads(text)
        assert documents[0]["defaultValue"] == 1.0
        assert "interpolation" not in documents[1]

        reparsed = [parse_entry(raw, i) for i, raw in enumerate(parse_rule_document(text, "rules.json"))]
        assert reparsed == definitions

    def test_yaml_dump_reparses(self) -> None:
        definitions = [RuleDefinition(name="A", expression="x", input_min=-1.0, input_max=1.0)]
        text = dump_rule_definitions(definitions, "rules.yaml")
        reparsed = [parse_entry(raw, i) for i, raw in enumerate(parse_rule_document(text))]
        assert reparsed == definitions
