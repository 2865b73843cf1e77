"""
Rule source parsing.

The container is a JSON array or a YAML sequence (optionally under a
top-level "rules" key). Container problems raise RuleSourceParseError;
problems with a single entry raise RuleEntryError so siblings can still load.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import PurePath
from typing import Any

import yaml
from pydantic import ValidationError

from motionbridge.domain.entities import RuleDefinition
from motionbridge.rules.models import RuleFileEntry


class RuleSourceParseError(ValueError):
    """Raised when the rule source is malformed at the container level."""


class RuleEntryError(ValueError):
    """Raised when a single rule entry cannot be decoded."""

    def __init__(self, name: str, expression_text: str, message: str) -> None:
        self.name = name
        self.expression_text = expression_text
        self.message = message
        super().__init__(message)


def _is_json(source_name: str | None) -> bool:
    return source_name is not None and PurePath(source_name).suffix.lower() == ".json"


def parse_rule_document(text: str, source_name: str | None = None) -> list[Any]:
    """
    Parse rule source text into a list of raw entries.

    Args:
        text: Rule source contents.
        source_name: Path or name of the source; a ".json" suffix selects
            the JSON parser, anything else is parsed as YAML.

    Returns:
        Raw entries in source order.

    Raises:
        RuleSourceParseError: If the text is not a sequence of entries.
    """
    try:
        if _is_json(source_name):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except json.JSONDecodeError as e:
        raise RuleSourceParseError(f"JSON parsing error: {e}") from e
    except yaml.YAMLError as e:
        raise RuleSourceParseError(f"Invalid YAML syntax in rules file: {e}") from e
    except (ValueError, RecursionError) as e:
        # Integers past the digit limit or nesting past the recursion limit
        raise RuleSourceParseError(f"Rules file cannot be parsed: {e}") from e

    if isinstance(data, dict) and "rules" in data:
        data = data["rules"]

    if data is None:
        raise RuleSourceParseError("Rules file is empty")
    if not isinstance(data, list):
        raise RuleSourceParseError(
            f"Rules file must contain a list of rules, got {type(data).__name__}"
        )
    return data


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "entry"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_entry(raw: Any, index: int) -> RuleDefinition:
    """
    Decode one raw entry into a RuleDefinition.

    Raises:
        RuleEntryError: If the entry is not a mapping or fails the schema.
    """
    if not isinstance(raw, dict):
        raise RuleEntryError(
            f"#{index}", "", f"Rule entry #{index} must be an object, got {type(raw).__name__}"
        )

    name = raw.get("name")
    label = name if isinstance(name, str) and name else f"#{index}"
    func = raw.get("func", raw.get("expression", ""))
    expression_text = "" if func is None else str(func)

    try:
        entry = RuleFileEntry.model_validate(raw)
    except ValidationError as e:
        raise RuleEntryError(
            label,
            expression_text,
            f"Rule '{label}' is malformed: {_describe_validation_error(e)}",
        ) from e

    return entry.to_definition()


def dump_rule_definitions(
    definitions: Iterable[RuleDefinition],
    source_name: str | None = None,
) -> str:
    """Serialize definitions back to rule-file text (JSON or YAML by suffix)."""
    documents = [RuleFileEntry.from_definition(d).to_document() for d in definitions]
    if _is_json(source_name):
        return json.dumps(documents, indent=2)
    return yaml.safe_dump(documents, sort_keys=False)
