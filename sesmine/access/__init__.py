"""Access decisions"""

from .engine import AccessDecision, AccessDecisionEngine, DecisionBasis, InsufficientTier

__all__ = ["AccessDecision", "AccessDecisionEngine", "DecisionBasis", "InsufficientTier"]
