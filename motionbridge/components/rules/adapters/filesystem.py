"""
Local file system adapter for the rules component.

Reads rule files with pathlib and watches them with a watchdog Observer.
The observer watches the parent directory, so atomic saves (write to a
temp file, then rename over the original) are reported too.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..ports import RuleSourceError

logger = logging.getLogger(__name__)

# Editors often emit several events per save
DEFAULT_DEBOUNCE_SECONDS = 0.2


class RuleFileEventHandler(FileSystemEventHandler):
    """Forward debounced events for one file to a callback."""

    def __init__(
        self,
        path: Path,
        callback: Callable[[Path], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.path = path
        self.callback = callback
        self.debounce_seconds = debounce_seconds
        self._target = path.resolve()
        self._last_fired: float | None = None
        self._lock = threading.Lock()

    def _matches(self, raw_path: str | bytes) -> bool:
        if not raw_path:
            return False
        return Path(os.fsdecode(raw_path)).resolve() == self._target

    def _fire(self) -> None:
        now = time.monotonic()
        with self._lock:
            if self._last_fired is not None and now - self._last_fired < self.debounce_seconds:
                return
            self._last_fired = now

        try:
            self.callback(self.path)
        except Exception:
            logger.exception("Rules file change callback failed for %s", self.path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._fire()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._fire()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.dest_path):
            self._fire()


class ObserverWatch:
    """RuleWatch backed by a running watchdog Observer."""

    def __init__(self, observer: Observer) -> None:
        self._observer = observer
        self._stopped = False

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._observer.stop()
        # stop() can run on the observer thread itself from a callback
        if threading.current_thread() is not self._observer:
            self._observer.join()


class LocalRuleSourceAdapter:
    """Adapter for rule files on the local file system."""

    def __init__(self, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self.debounce_seconds = debounce_seconds

    def read_text(self, path: Path) -> str:
        """Read a rule file as UTF-8 text."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RuleSourceError(f"Rules file not found: {path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise RuleSourceError(f"Failed to read rules file {path}: {e}") from e

    def on_changed(self, path: Path, callback: Callable[[Path], None]) -> ObserverWatch:
        """Start a watchdog observer on the file's directory."""
        handler = RuleFileEventHandler(path, callback, self.debounce_seconds)
        observer = Observer()
        try:
            observer.schedule(handler, str(path.parent), recursive=False)
            observer.start()
        except OSError as e:
            raise RuleSourceError(f"Cannot watch rules file {path}: {e}") from e

        logger.debug("Watching rules file %s", path)
        return ObserverWatch(observer)


# Default adapter instance
default_rule_source = LocalRuleSourceAdapter()
