"""
Observed output ranges per rule.

The first value seen for a name sets both min and max. Trackers are reset
whenever the rule set is reloaded so stale ranges do not leak across edits.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class Extremum:
    """Smallest and largest value observed for one parameter."""

    min: float
    max: float

    def widened(self, value: float) -> Extremum:
        if self.min <= value <= self.max:
            return self
        return Extremum(min=min(self.min, value), max=max(self.max, value))


class ExtremumTracker:
    """Tracks per-name extremums across frames. Not thread-safe."""

    def __init__(self) -> None:
        self._extremums: dict[str, Extremum] = {}

    def update(self, values: Mapping[str, float]) -> None:
        """Fold one frame of output values into the tracked ranges."""
        for name, value in values.items():
            if not math.isfinite(value):
                continue
            current = self._extremums.get(name)
            if current is None:
                self._extremums[name] = Extremum(min=value, max=value)
            else:
                self._extremums[name] = current.widened(value)

    def get(self, name: str) -> Extremum | None:
        return self._extremums.get(name)

    def snapshot(self) -> dict[str, Extremum]:
        return dict(self._extremums)

    def reset(self) -> None:
        self._extremums.clear()
