"""
Rules component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from motionbridge.domain.entities import RuleSetSnapshot


@dataclass(frozen=True)
class LoadRulesInput:
    """Input for loading rules."""

    source_path: Path | str


@dataclass(frozen=True)
class LoadRulesOutput:
    """Output from loading rules."""

    snapshot: RuleSetSnapshot
    source_path: Path
    loaded_at: datetime | None = None

    @property
    def success(self) -> bool:
        """True when the source was read and parsed on this attempt."""
        return self.loaded_at is not None


@dataclass(frozen=True)
class RulesChangedEvent:
    """Notification that the loaded rule source changed on disk."""

    path: Path
    changed_at: datetime
