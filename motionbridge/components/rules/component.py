"""
Rules component - load, validate and cache transformation rules.

This component owns the authoritative rule source. Each load reads the
source through a RuleSourcePort, decodes every entry, runs it through the
validator and publishes an immutable RuleSetSnapshot.

Key behaviors:
- A malformed entry only costs that entry; siblings still load
- Io or container-level parse failures return the last good snapshot with
  loaded_from_fallback set, or an empty snapshot with one fatal diagnostic
- After every load, successful or not, the source is watched; a change only
  marks the repository stale and notifies listeners, it never reloads by
  itself
- reload_requested is raised by change notifications only, so a failed
  reload is not retried until the source changes again

Invariants:
- The published snapshot is swapped as a whole, readers never see a
  partial rule set
- load() never raises for bad rule data or an unreadable source
- Watches are stopped outside the repository lock; the watcher thread may
  be waiting on that lock to deliver a last event
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from motionbridge.core.services.validator import partition_definitions
from motionbridge.domain.entities import (
    EMPTY_SNAPSHOT,
    DiagnosticKind,
    RuleDefinition,
    RuleDiagnostic,
    RuleSetSnapshot,
)
from motionbridge.rules.loader import (
    RuleEntryError,
    RuleSourceParseError,
    parse_entry,
    parse_rule_document,
)

from .models import LoadRulesInput, LoadRulesOutput, RulesChangedEvent
from .ports import RuleSourceError, RuleSourcePort, RuleWatch

logger = logging.getLogger(__name__)

RulesChangedListener = Callable[[RulesChangedEvent], None]

# Default rules file path (relative to the working directory)
DEFAULT_RULES_PATH = "configs/vts_transforms.json"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def decode_entries(
    raw_entries: Iterable[Any],
) -> tuple[list[RuleDefinition], list[RuleDiagnostic]]:
    """
    Decode raw entries into definitions.

    Pure function - entries that fail the schema become Validation
    diagnostics instead of aborting the batch.
    """
    definitions: list[RuleDefinition] = []
    diagnostics: list[RuleDiagnostic] = []

    for index, raw in enumerate(raw_entries):
        try:
            definitions.append(parse_entry(raw, index))
        except RuleEntryError as e:
            diagnostics.append(
                RuleDiagnostic(
                    rule_name=e.name,
                    expression_text=e.expression_text,
                    message=e.message,
                    kind=DiagnosticKind.VALIDATION,
                )
            )

    return definitions, diagnostics


def build_snapshot(
    raw_entries: Iterable[Any],
    *,
    functions: Mapping[str, Callable[..., Any]] | None = None,
) -> RuleSetSnapshot:
    """
    Decode and validate a parsed rule document into a snapshot.

    Entry-format diagnostics come first, followed by validator diagnostics,
    each group in source order.
    """
    definitions, entry_diagnostics = decode_entries(raw_entries)
    valid, diagnostics = partition_definitions(definitions, functions=functions)
    return RuleSetSnapshot(
        valid_rules=tuple(valid),
        diagnostics=tuple(entry_diagnostics) + tuple(diagnostics),
    )


class RuleRepository:
    """
    Cached, watched rule source.

    Thread-safe: load() may run on any thread while the frame loop reads
    current_snapshot(); change notifications arrive on the watcher thread.
    """

    def __init__(
        self,
        source: RuleSourcePort,
        *,
        functions: Mapping[str, Callable[..., Any]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._functions = functions
        self._clock = clock

        self._lock = threading.Lock()
        self._snapshot: RuleSetSnapshot = EMPTY_SNAPSHOT
        self._last_good: RuleSetSnapshot | None = None
        self._rules_path: Path | None = None
        self._last_load_time: datetime | None = None
        self._up_to_date = False
        self._last_error: str | None = None
        # Bumped by change notifications; load() records the value it started from
        self._change_generation = 0
        self._loaded_generation = 0

        self._watch: RuleWatch | None = None
        self._watched_path: Path | None = None
        self._listeners: list[RulesChangedListener] = []

    # --- Properties ---

    @property
    def rules_path(self) -> Path | None:
        """Path passed to the most recent load(), made absolute."""
        return self._rules_path

    @property
    def last_load_time(self) -> datetime | None:
        """UTC time of the last successful load."""
        return self._last_load_time

    @property
    def is_up_to_date(self) -> bool:
        """False after a change notification or a failed load."""
        return self._up_to_date

    @property
    def last_error(self) -> str | None:
        """Io or parse failure of the most recent load, None after a success."""
        return self._last_error

    @property
    def reload_requested(self) -> bool:
        """True when the source changed since the most recent load started."""
        with self._lock:
            return self._change_generation != self._loaded_generation

    # --- Loading ---

    def load(self, source_path: Path | str) -> RuleSetSnapshot:
        """
        Read, parse and validate the rule source.

        Args:
            source_path: Rule file path.

        Returns:
            The new snapshot on success. On Io or parse failure, the previous
            good snapshot flagged as fallback, or an empty snapshot with one
            fatal diagnostic if nothing was ever loaded.
        """
        path = Path(source_path).absolute()

        previous: RuleWatch | None = None
        with self._lock:
            if self._rules_path is not None and path != self._rules_path:
                previous = self._detach_watch()
            self._rules_path = path
            generation = self._change_generation

        if previous is not None:
            previous.stop()

        try:
            text = self._source.read_text(path)
            raw_entries = parse_rule_document(text, str(path))
        except (RuleSourceError, RuleSourceParseError) as e:
            snapshot = self._fail(path, str(e), generation)
            self._start_watching(path)
            return snapshot

        snapshot = build_snapshot(raw_entries, functions=self._functions)

        with self._lock:
            self._snapshot = snapshot
            self._last_good = snapshot
            self._last_load_time = self._clock()
            self._loaded_generation = generation
            # A change during the read leaves the repository stale
            self._up_to_date = self._change_generation == generation
            self._last_error = None

        logger.info(
            "Loaded %d valid and %d invalid transformation rules from %s",
            snapshot.valid_count,
            snapshot.invalid_count,
            path,
        )
        for diagnostic in snapshot.diagnostics:
            logger.error("Invalid rule '%s': %s", diagnostic.rule_name, diagnostic.message)

        self._start_watching(path)
        return snapshot

    def _fail(self, path: Path, reason: str, generation: int) -> RuleSetSnapshot:
        with self._lock:
            self._up_to_date = False
            self._loaded_generation = generation
            self._last_error = reason
            last_good = self._last_good

            if last_good is not None:
                snapshot = RuleSetSnapshot(
                    valid_rules=last_good.valid_rules,
                    diagnostics=last_good.diagnostics,
                    loaded_from_fallback=True,
                    fallback_reason=reason,
                )
            else:
                snapshot = RuleSetSnapshot(
                    diagnostics=(
                        RuleDiagnostic(
                            rule_name=str(path),
                            expression_text="",
                            message=reason,
                            kind=DiagnosticKind.VALIDATION,
                        ),
                    ),
                )
            self._snapshot = snapshot

        if last_good is not None:
            logger.warning(
                "Failed to load rules from %s, using %d cached rules: %s",
                path,
                snapshot.valid_count,
                reason,
            )
        else:
            logger.error("Failed to load rules from %s: %s", path, reason)
        return snapshot

    def current_snapshot(self) -> RuleSetSnapshot:
        """Return the last published snapshot without touching the source."""
        return self._snapshot

    # --- Change Notification ---

    def on_rules_changed(self, listener: RulesChangedListener) -> Callable[[], None]:
        """
        Register a listener for source changes.

        Listeners run on the watcher thread and should only schedule work.

        Returns:
            Callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _start_watching(self, path: Path) -> None:
        with self._lock:
            if self._watch is not None and self._watched_path == path:
                return
            previous = self._detach_watch()

        if previous is not None:
            previous.stop()

        try:
            watch = self._source.on_changed(path, self._handle_source_changed)
        except RuleSourceError as e:
            logger.warning("Could not watch rules file %s: %s", path, e)
            return

        with self._lock:
            replaced = self._detach_watch()
            self._watch = watch
            self._watched_path = path

        if replaced is not None:
            replaced.stop()

    def _detach_watch(self) -> RuleWatch | None:
        # Caller holds the lock and stops the returned watch after releasing it
        watch = self._watch
        self._watch = None
        self._watched_path = None
        return watch

    def _handle_source_changed(self, path: Path) -> None:
        with self._lock:
            if self._rules_path is None or Path(path).absolute() != self._rules_path:
                return
            self._change_generation += 1
            self._up_to_date = False
            rules_path = self._rules_path
            listeners = list(self._listeners)

        logger.debug("Rules file changed: %s", path)
        event = RulesChangedEvent(path=rules_path, changed_at=self._clock())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Rules-changed listener failed")

    def close(self) -> None:
        """Stop watching the source and drop every listener."""
        with self._lock:
            watch = self._detach_watch()
            self._listeners.clear()

        if watch is not None:
            watch.stop()


def run_load(
    inp: LoadRulesInput,
    *,
    repository: RuleRepository,
) -> LoadRulesOutput:
    """
    Load rules through a repository.

    Args:
        inp: Input containing the rule source path.
        repository: Repository that caches and watches the source.

    Returns:
        LoadRulesOutput with the published snapshot. loaded_at is None when
        the source could not be read or parsed.
    """
    snapshot = repository.load(inp.source_path)
    loaded_at = repository.last_load_time if repository.last_error is None else None
    return LoadRulesOutput(
        snapshot=snapshot,
        source_path=repository.rules_path or Path(inp.source_path),
        loaded_at=loaded_at,
    )
