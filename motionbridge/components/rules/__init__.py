"""
Rules component - load, validate, cache and watch transformation rules.
"""

from .component import (
    DEFAULT_RULES_PATH,
    RuleRepository,
    RulesChangedListener,
    build_snapshot,
    decode_entries,
    run_load,
)
from .models import LoadRulesInput, LoadRulesOutput, RulesChangedEvent
from .ports import RuleSourceError, RuleSourcePort, RuleWatch

__all__ = [
    # Component entry points
    "run_load",
    "build_snapshot",
    "decode_entries",
    # Repository
    "RuleRepository",
    "RulesChangedListener",
    # Models
    "LoadRulesInput",
    "LoadRulesOutput",
    "RulesChangedEvent",
    # Ports
    "RuleSourcePort",
    "RuleWatch",
    # Exceptions
    "RuleSourceError",
    # Constants
    "DEFAULT_RULES_PATH",
]
