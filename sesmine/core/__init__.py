"""Core building blocks: tiers, clock, configuration and locking"""

from .clock import utcnow
from .config import Settings, load_settings
from .locks import KeyedLocks
from .tiers import PrincipalStatus, Role, Tier

__all__ = [
    "utcnow",
    "Settings",
    "load_settings",
    "KeyedLocks",
    "PrincipalStatus",
    "Role",
    "Tier",
]
