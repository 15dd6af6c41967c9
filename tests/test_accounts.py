"""Registration, login and admin account management"""

from datetime import datetime, timezone

import pytest

from sesmine.core.tiers import PrincipalStatus, Role, Tier
from sesmine.notifications.gateway import EventKind
from sesmine.services.accounts import AccountService, PrincipalFilter
from sesmine.utils.exceptions import (
    AccountSuspendedError,
    DuplicateIdentityError,
    InvalidCredentialError,
    NotFoundError,
)

from conftest import STRONG_PASSWORD, FailingNotifier


def test_register_signs_in(accounts, sessions, notifier, clock):
    principal, session = accounts.register("new@example.com", STRONG_PASSWORD, name="New User", company="Pit Co")
    assert principal.tier == Tier.FREE
    assert principal.company == "Pit Co"
    assert principal.last_authenticated_at == clock.now
    assert sessions.validate(session.token).id == principal.id
    assert notifier.kinds() == [EventKind.PRINCIPAL_REGISTERED]


def test_register_duplicate(accounts):
    accounts.register("new@example.com", STRONG_PASSWORD)
    with pytest.raises(DuplicateIdentityError):
        accounts.register("NEW@example.com", STRONG_PASSWORD)


def test_login_replaces_session(accounts, sessions, notifier):
    _, first = accounts.register("ada@example.com", STRONG_PASSWORD)
    principal, second = accounts.login("ADA@example.com", STRONG_PASSWORD)
    assert sessions.validate(first.token) is None
    assert sessions.validate(second.token).id == principal.id
    assert notifier.kinds()[-1] == EventKind.PRINCIPAL_LOGGED_IN


def test_login_failures(accounts):
    accounts.register("ada@example.com", STRONG_PASSWORD)
    with pytest.raises(InvalidCredentialError):
        accounts.login("ada@example.com", "Wr0ng!pass")
    with pytest.raises(NotFoundError):
        accounts.login("bob@example.com", STRONG_PASSWORD)


def test_suspension_revokes_and_blocks_login(accounts, sessions):
    principal, session = accounts.register("ada@example.com", STRONG_PASSWORD)
    accounts.update_principal(principal.id, status=PrincipalStatus.SUSPENDED)
    assert sessions.validate(session.token) is None
    with pytest.raises(AccountSuspendedError):
        accounts.login("ada@example.com", STRONG_PASSWORD)

    accounts.update_principal(principal.id, status="active")
    assert accounts.login("ada@example.com", STRONG_PASSWORD)[0].is_active


def test_update_principal_notifies(accounts, notifier, make_principal):
    principal = make_principal()
    updated = accounts.update_principal(principal.id, changed_by="admin-1", tier=Tier.ENTERPRISE)
    assert updated.tier == Tier.ENTERPRISE
    kind, principal_id, payload = notifier.events[-1]
    assert kind == EventKind.PRINCIPAL_UPDATED
    assert payload["changes"] == {"tier": "enterprise"}
    assert payload["changed_by"] == "admin-1"


def test_update_with_no_fields_is_noop(accounts, notifier, make_principal):
    principal = make_principal()
    assert accounts.update_principal(principal.id).id == principal.id
    assert notifier.events == []


def test_list_principals_filters(accounts, make_principal):
    make_principal("ada@example.com", tier=Tier.STARTER, name="Ada Lovelace", company="Analytical")
    make_principal("bob@example.com", tier=Tier.ENTERPRISE, name="Bob", company="Deep Mines")
    make_principal("root@example.com", role=Role.ADMIN, name="Root")

    def emails(**kwargs):
        return sorted(p.email for p in accounts.list_principals(PrincipalFilter(**kwargs)))

    assert len(emails()) == 3
    assert emails(search="lovelace") == ["ada@example.com"]
    assert emails(search="MINES") == ["bob@example.com"]
    assert emails(tier=Tier.ENTERPRISE) == ["bob@example.com"]
    assert emails(role=Role.ADMIN) == ["root@example.com"]
    assert emails(status=PrincipalStatus.SUSPENDED) == []


def test_stats(accounts, make_principal, clock):
    clock.now = datetime(2026, 2, 20, tzinfo=timezone.utc)
    make_principal("old@example.com", tier=Tier.PROFESSIONAL)
    clock.now = datetime(2026, 3, 2, tzinfo=timezone.utc)
    make_principal("new@example.com", tier=Tier.ENTERPRISE)
    suspended = make_principal("gone@example.com")
    accounts.update_principal(suspended.id, status=PrincipalStatus.SUSPENDED)

    assert accounts.stats(clock.now) == {
        "total": 3,
        "active": 2,
        "premium": 2,
        "new_this_month": 2,
    }


def test_ensure_admin_seeds_once(accounts, store):
    admin = accounts.ensure_admin("admin@sesmine.com", STRONG_PASSWORD)
    assert admin.is_admin
    assert admin.tier == Tier.ENTERPRISE
    assert accounts.ensure_admin("other@sesmine.com", STRONG_PASSWORD) is None
    assert accounts.ensure_admin(None, None) is None
    assert store.count() == 1


def test_failing_notifier_does_not_break_registration(store, sessions):
    accounts = AccountService(store, sessions, FailingNotifier())
    principal, session = accounts.register("ada@example.com", STRONG_PASSWORD)
    assert sessions.validate(session.token).id == principal.id


def test_admin_create_principal(accounts, store, notifier, tmp_path):
    principal = accounts.create_principal(
        "crew@example.com",
        STRONG_PASSWORD,
        tier="professional",
        role=Role.USER,
        status=PrincipalStatus.SUSPENDED,
        created_by="admin-1",
        name="Crew Lead",
        notes="Pilot customer",
    )
    stored = store.get_principal(principal.id)
    assert stored.tier == Tier.PROFESSIONAL
    assert stored.status == PrincipalStatus.SUSPENDED
    assert stored.notes == "Pilot customer"
    assert stored.last_authenticated_at is None
    assert not list((tmp_path / "sessions" / "tokens").glob("*.json"))

    kind, principal_id, payload = notifier.events[-1]
    assert kind == EventKind.PRINCIPAL_REGISTERED
    assert principal_id == principal.id
    assert payload["created_by"] == "admin-1"
    assert payload["tier"] == "professional"

    with pytest.raises(AccountSuspendedError):
        accounts.login("crew@example.com", STRONG_PASSWORD)


def test_admin_create_principal_without_notification(accounts, notifier):
    principal = accounts.create_principal("quiet@example.com", STRONG_PASSWORD, role="admin", notify=False)
    assert principal.is_admin
    assert principal.tier == Tier.FREE
    assert notifier.events == []
    assert accounts.login("quiet@example.com", STRONG_PASSWORD)[0].id == principal.id


def test_admin_create_principal_duplicate_email(accounts, make_principal):
    make_principal("taken@example.com")
    with pytest.raises(DuplicateIdentityError):
        accounts.create_principal("TAKEN@example.com", STRONG_PASSWORD, tier=Tier.ENTERPRISE)
