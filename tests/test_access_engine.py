"""Access decisions over tiers, custom grants and the admin override"""

import pytest

from sesmine.access.engine import DecisionBasis
from sesmine.auth.models import Principal
from sesmine.catalog.models import ResourceKind
from sesmine.core.tiers import TIER_ORDER, Role, Tier
from sesmine.utils.exceptions import InsufficientTierError, UnknownResourceError


def _principal(tier=Tier.FREE, role=Role.USER, grants=()):
    return Principal(
        email="p@example.com",
        credential_hash="x",
        tier=tier,
        role=role,
        custom_grants=set(grants),
    )


@pytest.mark.parametrize("tier", TIER_ORDER)
@pytest.mark.parametrize("granted", [False, True])
def test_decide_matches_tier_rule_for_every_resource(engine, catalog, tier, granted):
    for resource in catalog:
        principal = _principal(tier, grants=[resource.id] if granted else [])
        decision = engine.decide(principal, resource.id)
        expected = granted or tier.rank >= resource.min_tier.rank
        assert decision.allowed is expected, resource.id
        if not decision.allowed:
            assert decision.reason.required == resource.min_tier
            assert decision.reason.actual == tier
            assert decision.reason.code == "insufficient_tier"


@pytest.mark.parametrize("tier", TIER_ORDER)
def test_admin_allowed_everything(engine, catalog, tier):
    admin = _principal(tier, role=Role.ADMIN)
    for resource in catalog:
        decision = engine.decide(admin, resource.id)
        assert decision.allowed
        assert decision.basis == DecisionBasis.ADMIN


def test_engineering_hub_scenario(engine):
    free = _principal(Tier.FREE)
    decision = engine.decide(free, "engineering-hub")
    assert not decision
    assert decision.to_dict() == {
        "resource_id": "engineering-hub",
        "allowed": False,
        "basis": "tier",
        "reason": {"code": "insufficient_tier", "required": "starter", "actual": "free"},
    }

    starter = _principal(Tier.STARTER)
    assert engine.decide(starter, "engineering-hub").basis == DecisionBasis.TIER
    assert not engine.decide(starter, "consulting-hub")

    granted = _principal(Tier.FREE, grants=["consulting-hub"])
    decision = engine.decide(granted, "consulting-hub")
    assert decision.allowed
    assert decision.basis == DecisionBasis.CUSTOM_GRANT


def test_unknown_resource(engine):
    with pytest.raises(UnknownResourceError):
        engine.decide(_principal(Tier.ENTERPRISE), "nonexistent-hub")
    # Admin short-circuits before the catalog lookup.
    assert engine.decide(_principal(role=Role.ADMIN), "nonexistent-hub").allowed


def test_require_raises_with_both_tiers(engine):
    with pytest.raises(InsufficientTierError) as exc:
        engine.require(_principal(Tier.STARTER), "safety-hub")
    assert exc.value.required == "professional"
    assert exc.value.actual == "starter"
    assert engine.require(_principal(Tier.PROFESSIONAL), "safety-hub").allowed


def test_accessible_and_locked_partition_catalog(engine, catalog):
    principal = _principal(Tier.STARTER, grants=["innovation-hub"])
    accessible = {r.id for r in engine.accessible_resources(principal)}
    locked = {r.id for r in engine.locked_resources(principal)}
    assert accessible | locked == {r.id for r in catalog}
    assert not accessible & locked
    assert {"engineering-hub", "economics-hub", "innovation-hub", "basic-tools"} <= accessible
    assert "operations-hub" in locked

    hubs = {r.id for r in engine.accessible_resources(principal, ResourceKind.HUB)}
    assert hubs == {"engineering-hub", "economics-hub", "innovation-hub"}


def test_decide_is_pure(engine):
    principal = _principal(Tier.STARTER)
    before = principal.model_dump()
    engine.decide(principal, "operations-hub")
    assert principal.model_dump() == before
