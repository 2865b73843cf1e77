"""
End-to-end flow: settings -> wired service -> frames -> hot reload.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from motionbridge.app_shell.config import (
    TransformationEngineSettings,
    create_transformation_service,
)
from motionbridge.components.rules.adapters import LocalRuleSourceAdapter
from motionbridge.components.transform import ServiceStatus, TransformInput


def test_sample_rules_transform_a_frame(sample_rules_path: Path) -> None:
    settings = TransformationEngineSettings(config_path=sample_rules_path)
    service, repository = create_transformation_service(settings)
    try:
        service.load_rules()
        output = service.transform(
            TransformInput(
                {
                    "HeadRotX": 10.0,
                    "HeadRotY": 45.0,
                    "HeadRotZ": -5.0,
                    "eyeBlinkLeft": 0.0,
                    "eyeBlinkRight": 1.0,
                    "jawOpen": 0.5,
                    "mouthSmileLeft": 0.6,
                    "mouthSmileRight": 0.4,
                    "mouthFrownLeft": 0.0,
                }
            )
        )
    finally:
        repository.close()

    assert output.diagnostics == ()
    assert output.values["FaceAngleX"] == pytest.approx(30.0)
    assert output.values["FaceAngleY"] == pytest.approx(-10.0)
    assert output.values["EyeOpenLeft"] == pytest.approx(1.0)
    assert output.values["EyeOpenRight"] == pytest.approx(0.0)
    assert output.values["MouthSmile"] == pytest.approx(0.5)
    # Reads FaceAngleX after it settled at its max
    assert output.values["BodyAngleX"] == pytest.approx(10.0)
    assert service.stats().status is ServiceStatus.ALL_RULES_VALID


def test_reload_if_stale_picks_up_edits(write_rules: Callable[..., Path]) -> None:
    path = write_rules([{"name": "A", "func": "x * 2", "min": 0, "max": 100}])
    settings = TransformationEngineSettings(config_path=path)
    service, repository = create_transformation_service(
        settings, source=LocalRuleSourceAdapter(debounce_seconds=0.0)
    )
    try:
        service.load_rules()
        assert service.transform(TransformInput({"x": 10.0})).values == pytest.approx({"A": 20.0})

        write_rules([{"name": "A", "func": "x * 3", "min": 0, "max": 100}])
        # Simulate the watcher having fired
        repository._handle_source_changed(path)

        assert service.reload_if_stale() is True
        assert service.transform(TransformInput({"x": 10.0})).values == pytest.approx({"A": 30.0})
        assert service.stats().counters["hot_reload_successes"] == 1
    finally:
        repository.close()


def test_missing_rules_file_reports_config_error(tmp_path: Path) -> None:
    settings = TransformationEngineSettings(config_path=tmp_path / "absent.json")
    service, repository = create_transformation_service(settings)
    try:
        service.load_rules()
        stats = service.stats()
    finally:
        repository.close()

    assert stats.status is ServiceStatus.CONFIG_ERROR
    assert stats.last_error is not None
    assert service.transform(TransformInput({"x": 1.0})).values == {}


def test_deleted_rules_file_is_not_reloaded_every_frame(
    write_rules: Callable[..., Path],
) -> None:
    path = write_rules([{"name": "A", "func": "x", "min": 0, "max": 100}])
    settings = TransformationEngineSettings(config_path=path)
    service, repository = create_transformation_service(settings)
    try:
        service.load_rules()
        path.unlink()
        repository._handle_source_changed(path)

        attempts = [service.reload_if_stale() for _ in range(5)]
        stats = service.stats()
    finally:
        repository.close()

    assert attempts == [True, False, False, False, False]
    assert stats.counters["hot_reload_attempts"] == 1
    assert stats.counters["hot_reload_failures"] == 1
    assert stats.status is ServiceStatus.CONFIG_ERROR_CACHED
    assert service.transform(TransformInput({"x": 40.0})).values == pytest.approx({"A": 40.0})


def test_rules_file_created_after_failed_start(
    tmp_path: Path, write_rules: Callable[..., Path]
) -> None:
    settings = TransformationEngineSettings(config_path=tmp_path / "rules.json")
    service, repository = create_transformation_service(
        settings, source=LocalRuleSourceAdapter(debounce_seconds=0.0)
    )
    changed = threading.Event()
    repository.on_rules_changed(lambda event: changed.set())
    try:
        service.load_rules()
        assert service.stats().status is ServiceStatus.CONFIG_ERROR

        staged = write_rules([{"name": "A", "func": "x", "min": 0, "max": 100}], name="staged.json")
        # Rename so the file never appears half written
        staged.replace(tmp_path / "rules.json")

        assert changed.wait(5.0), "no change notification received"
        assert service.reload_if_stale() is True
        stats = service.stats()
    finally:
        repository.close()

    assert stats.status is ServiceStatus.ALL_RULES_VALID
    assert stats.counters["hot_reload_successes"] == 1
