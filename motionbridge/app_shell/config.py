"""
Transformation engine settings and service wiring.

Settings come from an optional YAML file, either under a
`transformation_engine:` section or as a flat mapping, with environment
variables taking precedence over the file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from motionbridge.components.rules import DEFAULT_RULES_PATH, RuleRepository, RuleSourcePort
from motionbridge.components.rules.adapters import LocalRuleSourceAdapter
from motionbridge.components.transform import TransformationService
from motionbridge.core.services.engine import EngineConfig, TransformationEngine

SETTINGS_SECTION = "transformation_engine"
ENV_RULES_PATH = "MOTIONBRIDGE_RULES_PATH"
ENV_MAX_ITERATIONS = "MOTIONBRIDGE_MAX_ITERATIONS"


class SettingsError(ValueError):
    """Raised when the settings file or environment holds invalid values."""


class TransformationEngineSettings(BaseModel):
    config_path: Path = Path(DEFAULT_RULES_PATH)
    max_evaluation_iterations: int = Field(default=10, ge=1, le=50)
    convergence_tolerance: float = Field(default=1e-9, gt=0)

    model_config = ConfigDict(extra="ignore", frozen=True)

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            max_evaluation_iterations=self.max_evaluation_iterations,
            convergence_tolerance=self.convergence_tolerance,
        )


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML syntax in settings file: {e}") from e
    except OSError as e:
        raise SettingsError(f"Cannot read settings file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")

    section = data.get(SETTINGS_SECTION, data)
    if not isinstance(section, dict):
        raise SettingsError(f"'{SETTINGS_SECTION}' in {path} must be a mapping")
    return dict(section)


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> TransformationEngineSettings:
    """
    Load engine settings.

    Args:
        path: Optional YAML settings file. A missing file means defaults.
        environ: Environment mapping. Uses os.environ if None.

    Returns:
        Validated TransformationEngineSettings.

    Raises:
        SettingsError: If any value fails validation.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if path is not None and Path(path).exists():
        values.update(_read_settings_file(Path(path)))

    if env.get(ENV_RULES_PATH):
        values["config_path"] = env[ENV_RULES_PATH]
    if env.get(ENV_MAX_ITERATIONS):
        values["max_evaluation_iterations"] = env[ENV_MAX_ITERATIONS]

    try:
        return TransformationEngineSettings.model_validate(values)
    except ValidationError as e:
        raise SettingsError(f"Transformation engine settings are invalid:\n{e}") from e


def create_transformation_service(
    settings: TransformationEngineSettings | None = None,
    *,
    source: RuleSourcePort | None = None,
) -> tuple[TransformationService, RuleRepository]:
    """
    Wire a repository, engine and service from settings.

    The caller owns the returned repository and should close() it on
    shutdown to stop the file watcher.
    """
    settings = settings or TransformationEngineSettings()
    repository = RuleRepository(source or LocalRuleSourceAdapter())
    service = TransformationService(
        repository,
        settings.config_path,
        engine=TransformationEngine(settings.engine_config()),
    )
    return service, repository
