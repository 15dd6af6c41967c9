"""
Access decision engine.

decide() is a pure function of (principal snapshot, catalog, resource id):

    1. admin role            -> allow
    2. id in custom grants   -> allow
    3. unknown resource      -> UnknownResourceError
    4. tier >= min_tier      -> allow, otherwise deny with InsufficientTier
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..auth.models import Principal
from ..catalog.catalog import EntitlementCatalog
from ..catalog.models import Resource, ResourceKind
from ..core.tiers import Tier
from ..utils.exceptions import InsufficientTierError


class DecisionBasis(str, Enum):
    ADMIN = "admin"
    CUSTOM_GRANT = "custom_grant"
    TIER = "tier"


@dataclass(frozen=True)
class InsufficientTier:
    """Machine-readable deny reason."""

    required: Tier
    actual: Tier
    code: str = "insufficient_tier"

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "required": self.required.value, "actual": self.actual.value}


@dataclass(frozen=True)
class AccessDecision:
    resource_id: str
    allowed: bool
    basis: DecisionBasis
    reason: Optional[InsufficientTier] = None

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "allowed": self.allowed,
            "basis": self.basis.value,
            "reason": self.reason.to_dict() if self.reason else None,
        }


class AccessDecisionEngine:
    """Tier comparison with admin and custom-grant overrides."""

    def __init__(self, catalog: EntitlementCatalog):
        self.catalog = catalog

    def decide(self, principal: Principal, resource_id: str) -> AccessDecision:
        if principal.is_admin:
            return AccessDecision(resource_id, True, DecisionBasis.ADMIN)
        if resource_id in principal.custom_grants:
            return AccessDecision(resource_id, True, DecisionBasis.CUSTOM_GRANT)

        resource = self.catalog.get(resource_id)
        if principal.tier >= resource.min_tier:
            return AccessDecision(resource_id, True, DecisionBasis.TIER)
        return AccessDecision(
            resource_id,
            False,
            DecisionBasis.TIER,
            InsufficientTier(required=resource.min_tier, actual=principal.tier),
        )

    def require(self, principal: Principal, resource_id: str) -> AccessDecision:
        """Like decide(), but raise InsufficientTierError on deny."""
        decision = self.decide(principal, resource_id)
        if not decision.allowed:
            raise InsufficientTierError(
                resource_id, decision.reason.required.value, decision.reason.actual.value
            )
        return decision

    def accessible_resources(
        self, principal: Principal, kind: Optional[ResourceKind] = None
    ) -> List[Resource]:
        return [r for r in self.catalog.list(kind) if self.decide(principal, r.id).allowed]

    def locked_resources(
        self, principal: Principal, kind: Optional[ResourceKind] = None
    ) -> List[Resource]:
        """Resources the principal cannot use yet, for upgrade prompts."""
        return [r for r in self.catalog.list(kind) if not self.decide(principal, r.id).allowed]
