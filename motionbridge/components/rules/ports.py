"""
Rules component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol


class RuleSourceError(Exception):
    """Raised by a RuleSourcePort when the rule source cannot be read."""


class RuleWatch(Protocol):
    """Handle for an active change subscription."""

    def stop(self) -> None:
        """Stop delivering change notifications."""
        ...


class RuleSourcePort(Protocol):
    """Port for reading the rule source and watching it for changes."""

    def read_text(self, path: Path) -> str:
        """
        Read the full rule source.

        Raises:
            RuleSourceError: If the source is missing or unreadable.
        """
        ...

    def on_changed(self, path: Path, callback: Callable[[Path], None]) -> RuleWatch:
        """
        Subscribe to changes of one rule source.

        The callback may run on a background thread.
        """
        ...
