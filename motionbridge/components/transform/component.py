"""
Transform component - turn tracking frames into avatar parameters.

TransformationService ties a rule repository to an evaluation engine and
keeps the bookkeeping an orchestrator needs: status, counters and the
observed output range of every parameter.

Key behaviors:
- load_rules() always goes through the repository and resets extremums
- reload_if_stale() reloads only after the repository reported a change;
  a failed reload waits for the next change instead of retrying per frame.
  Call it between frames, never from the watcher thread
- transform() returns no values when no face was found or no rules are
  loaded
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from motionbridge.core.services.engine import TransformationEngine
from motionbridge.core.services.extremums import ExtremumTracker
from motionbridge.domain.entities import (
    EMPTY_SNAPSHOT,
    ParameterDefinition,
    RuleSetSnapshot,
)

from .models import ServiceStats, ServiceStatus, TransformInput, TransformOutput
from .ports import RuleRepositoryPort

logger = logging.getLogger(__name__)

# --- Counters ---

TOTAL_TRANSFORMATIONS = "total_transformations"
SUCCESSFUL_TRANSFORMATIONS = "successful_transformations"
FAILED_TRANSFORMATIONS = "failed_transformations"
HOT_RELOAD_ATTEMPTS = "hot_reload_attempts"
HOT_RELOAD_SUCCESSES = "hot_reload_successes"
HOT_RELOAD_FAILURES = "hot_reload_failures"
VALID_RULES = "valid_rules"
INVALID_RULES = "invalid_rules"

COUNTER_NAMES = (
    TOTAL_TRANSFORMATIONS,
    SUCCESSFUL_TRANSFORMATIONS,
    FAILED_TRANSFORMATIONS,
    HOT_RELOAD_ATTEMPTS,
    HOT_RELOAD_SUCCESSES,
    HOT_RELOAD_FAILURES,
    VALID_RULES,
    INVALID_RULES,
)


def determine_status(
    snapshot: RuleSetSnapshot,
    *,
    loaded: bool,
    last_error: str | None,
) -> ServiceStatus:
    """Pure status classification of a published snapshot."""
    if not loaded:
        return ServiceStatus.NEVER_LOADED
    if snapshot.loaded_from_fallback:
        return ServiceStatus.CONFIG_ERROR_CACHED
    if last_error is not None:
        return ServiceStatus.CONFIG_ERROR
    if snapshot.valid_count == 0:
        return ServiceStatus.NO_VALID_RULES
    if snapshot.invalid_count > 0:
        return ServiceStatus.RULES_PARTIALLY_VALID
    return ServiceStatus.ALL_RULES_VALID


class TransformationService:
    """
    Per-frame transformation service.

    transform() is safe to call from the frame loop while another thread
    reloads; counters are guarded by a lock, evaluation itself is not.
    """

    def __init__(
        self,
        repository: RuleRepositoryPort,
        rules_path: Path | str,
        *,
        engine: TransformationEngine | None = None,
    ) -> None:
        self._repository = repository
        self._rules_path = Path(rules_path)
        self._engine = engine or TransformationEngine()

        self._lock = threading.Lock()
        self._loaded = False
        self._extremums = ExtremumTracker()
        self._counters = dict.fromkeys(COUNTER_NAMES, 0)

    @property
    def rules_path(self) -> Path:
        return self._rules_path

    @property
    def engine(self) -> TransformationEngine:
        return self._engine

    # --- Loading ---

    def load_rules(self) -> RuleSetSnapshot:
        """Load rules through the repository and reset extremum tracking."""
        snapshot = self._repository.load(self._rules_path)

        with self._lock:
            self._loaded = True
            self._extremums.reset()
            self._counters[VALID_RULES] = snapshot.valid_count
            self._counters[INVALID_RULES] = snapshot.invalid_count

        return snapshot

    def reload_if_stale(self) -> bool:
        """
        Reload rules when the source changed since the last load.

        Returns:
            True if a reload was attempted.
        """
        if not self._loaded or not self._repository.reload_requested:
            return False

        logger.info("Reloading transformation rules from %s", self._rules_path)
        with self._lock:
            self._counters[HOT_RELOAD_ATTEMPTS] += 1

        self.load_rules()

        failed = self._repository.last_error is not None
        with self._lock:
            self._counters[HOT_RELOAD_FAILURES if failed else HOT_RELOAD_SUCCESSES] += 1
        return True

    # --- Transformation ---

    def transform(self, inp: TransformInput) -> TransformOutput:
        """
        Evaluate the current rule set against one tracking frame.

        Never raises for bad rules or bad inputs; evaluation faults come
        back as diagnostics with default values substituted.
        """
        snapshot = self._repository.current_snapshot() if self._loaded else EMPTY_SNAPSHOT
        if not inp.face_found or not snapshot.valid_rules:
            return TransformOutput(face_found=inp.face_found)

        result = self._engine.evaluate(snapshot, inp.values)

        with self._lock:
            self._counters[TOTAL_TRANSFORMATIONS] += 1
            if result.diagnostics:
                self._counters[FAILED_TRANSFORMATIONS] += 1
            else:
                self._counters[SUCCESSFUL_TRANSFORMATIONS] += 1
            self._extremums.update(result.values)
            extremums = self._extremums.snapshot()

        return TransformOutput(
            face_found=True,
            values=result.values,
            diagnostics=result.diagnostics,
            extremums=extremums,
            iterations=result.iterations,
            converged=result.converged,
        )

    def parameter_definitions(self) -> list[ParameterDefinition]:
        """Host parameters to register, one per valid rule."""
        if not self._loaded:
            return []
        return [
            ParameterDefinition(
                name=rule.name,
                min=rule.input_min,
                max=rule.input_max,
                default_value=rule.default_value,
            )
            for rule in self._repository.current_snapshot().valid_rules
        ]

    # --- Stats ---

    def stats(self) -> ServiceStats:
        snapshot = self._repository.current_snapshot() if self._loaded else EMPTY_SNAPSHOT
        last_error = self._repository.last_error if self._loaded else None

        with self._lock:
            counters = dict(self._counters)

        return ServiceStats(
            status=determine_status(snapshot, loaded=self._loaded, last_error=last_error),
            counters=counters,
            rules_path=self._rules_path,
            is_up_to_date=self._loaded and self._repository.is_up_to_date,
            last_error=last_error,
            invalid_rules=snapshot.diagnostics,
        )


def run_transform(
    inp: TransformInput,
    *,
    service: TransformationService,
) -> TransformOutput:
    """
    Transform one tracking frame.

    Args:
        inp: Tracking values and the face-found flag.
        service: Service holding the loaded rules.

    Returns:
        TransformOutput with one value per valid rule.
    """
    return service.transform(inp)
