"""Subscription tiers, roles and principal status."""

from __future__ import annotations

from enum import Enum
from typing import List


class Tier(str, Enum):
    """Subscription tier, totally ordered free < starter < professional < enterprise.

    Comparisons use rank, never string order ("enterprise" < "free" as strings).
    """

    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value


TIER_ORDER: List[Tier] = [Tier.FREE, Tier.STARTER, Tier.PROFESSIONAL, Tier.ENTERPRISE]

PREMIUM_TIERS = frozenset({Tier.PROFESSIONAL, Tier.ENTERPRISE})


def tier_rank(tier: Tier | str) -> int:
    return Tier(tier).rank


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value


class PrincipalStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"

    def __str__(self) -> str:
        return self.value
