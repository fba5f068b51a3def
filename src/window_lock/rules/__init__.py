"""Lock rules: engine and storage."""

from .engine import EnforcementMode, LockEngine
from .store import YamlRulesStore

__all__ = [
    "LockEngine",
    "EnforcementMode",
    "YamlRulesStore",
]
