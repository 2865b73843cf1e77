import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def sample_rules_path() -> Path:
    """Rule file shipped with the project."""
    return PROJECT_ROOT / "configs" / "vts_transforms.json"


@pytest.fixture
def write_rules(tmp_path: Path) -> Callable[..., Path]:
    """
    Write a rule file into tmp_path and return its path.

    Lists are dumped as JSON; strings are written verbatim.
    """

    def _write(content: list[dict[str, Any]] | str, name: str = "rules.json") -> Path:
        path = tmp_path / name
        text = content if isinstance(content, str) else json.dumps(content, indent=2)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
