"""
Adapters for the rules component.
"""

from .filesystem import (
    LocalRuleSourceAdapter,
    ObserverWatch,
    RuleFileEventHandler,
    default_rule_source,
)

__all__ = [
    "LocalRuleSourceAdapter",
    "ObserverWatch",
    "RuleFileEventHandler",
    "default_rule_source",
]
