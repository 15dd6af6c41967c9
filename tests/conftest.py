"""Shared fixtures: every store lives under tmp_path, time is pinned."""

from datetime import datetime, timedelta, timezone

import pytest

from sesmine.access.engine import AccessDecisionEngine
from sesmine.auth.credentials import BcryptCredentialPolicy
from sesmine.auth.sessions import SessionManager
from sesmine.catalog.catalog import load_catalog
from sesmine.core.config import CredentialSettings
from sesmine.core.locks import KeyedLocks
from sesmine.core.tiers import Role, Tier
from sesmine.notifications.gateway import EventKind
from sesmine.services.access_requests import AccessRequestWorkflow
from sesmine.services.accounts import AccountService
from sesmine.stores.principals import PrincipalStore

STRONG_PASSWORD = "Str0ng!pass"
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, kind, principal_id, payload=None):
        self.events.append((EventKind(kind), principal_id, dict(payload or {})))

    def kinds(self):
        return [kind for kind, _, _ in self.events]


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def notify(self, kind, principal_id, payload=None):
        self.calls += 1
        raise RuntimeError("notification channel down")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def credentials():
    return BcryptCredentialPolicy(CredentialSettings(bcrypt_rounds=4))


@pytest.fixture
def locks(tmp_path):
    return KeyedLocks(tmp_path / "locks", timeout_seconds=5)


@pytest.fixture
def store(tmp_path, catalog, credentials, locks, clock):
    return PrincipalStore(tmp_path, catalog, credentials, locks, clock)


@pytest.fixture
def sessions(tmp_path, store, locks, clock):
    return SessionManager(tmp_path, store, locks, timeout=timedelta(hours=24), clock=clock)


@pytest.fixture
def engine(catalog):
    return AccessDecisionEngine(catalog)


@pytest.fixture
def workflow(store, engine, notifier):
    return AccessRequestWorkflow(store, engine, notifier)


@pytest.fixture
def accounts(store, sessions, notifier):
    return AccountService(store, sessions, notifier)


@pytest.fixture
def make_principal(store):
    def _make(email="user@example.com", tier=Tier.FREE, role=Role.USER, **profile):
        return store.create_principal(email, STRONG_PASSWORD, tier=tier, role=role, **profile)

    return _make
