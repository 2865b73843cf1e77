"""
Transform component port definitions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from motionbridge.domain.entities import RuleSetSnapshot


class RuleRepositoryPort(Protocol):
    """Port for the cached rule source the service evaluates."""

    @property
    def is_up_to_date(self) -> bool:
        """False once the source changed or the last load failed."""
        ...

    @property
    def reload_requested(self) -> bool:
        """True when the source changed since the most recent load started."""
        ...

    @property
    def last_error(self) -> str | None:
        """Io or parse failure of the most recent load."""
        ...

    def load(self, source_path: Path | str) -> RuleSetSnapshot:
        """Reload the source and return the published snapshot."""
        ...

    def current_snapshot(self) -> RuleSetSnapshot:
        """Return the published snapshot without reloading."""
        ...
