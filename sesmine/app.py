"""Application container: builds and wires the access-control services."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Optional

from .access.engine import AccessDecisionEngine
from .auth.credentials import BcryptCredentialPolicy, CredentialPolicy
from .auth.sessions import SessionManager
from .catalog.catalog import EntitlementCatalog, load_catalog
from .core.clock import Clock, utcnow
from .core.config import Settings, load_settings
from .core.locks import KeyedLocks
from .notifications.gateway import NotificationGateway, Notifier, build_gateway
from .services.access_requests import AccessRequestWorkflow
from .services.accounts import AccountService
from .stores.principals import PrincipalStore
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


class SesmineApp:
    """
    Holds one instance of every component, built from Settings.

    Callers pass the pieces they need explicitly; nothing here is a
    module-level singleton.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[EntitlementCatalog] = None,
        notifier: Optional[Notifier] = None,
        credentials: Optional[CredentialPolicy] = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings or load_settings()
        self.clock = clock
        data_dir = self.settings.data_path

        catalog_path = self.settings.catalog.path
        self.catalog = catalog or load_catalog(Path(catalog_path) if catalog_path else None)
        self.credentials = credentials or BcryptCredentialPolicy(self.settings.credentials)
        self.locks = KeyedLocks(
            data_dir / "locks", timeout_seconds=self.settings.storage.lock_timeout_seconds
        )

        self.gateway: Optional[NotificationGateway] = None
        if notifier is None:
            self.gateway = build_gateway(self.settings.notifications)
            notifier = self.gateway
        self.notifier = notifier

        self.principals = PrincipalStore(data_dir, self.catalog, self.credentials, self.locks, clock)
        self.sessions = SessionManager(
            data_dir,
            self.principals,
            self.locks,
            timeout=timedelta(hours=self.settings.sessions.timeout_hours),
            clock=clock,
        )
        self.engine = AccessDecisionEngine(self.catalog)
        self.requests = AccessRequestWorkflow(self.principals, self.engine, self.notifier)
        self.accounts = AccountService(self.principals, self.sessions, self.notifier)

    def initialize(self) -> None:
        """Start background dispatch and seed the first admin if configured."""
        logger.info(
            "Initializing SESMine access layer",
            app_name=self.settings.app.name,
            version=self.settings.app.version,
            environment=self.settings.app.environment,
            data_dir=str(self.settings.data_path),
            resources=len(self.catalog),
        )
        if self.gateway is not None:
            self.gateway.start()
        seed = self.settings.seed_admin
        self.accounts.ensure_admin(seed.email, seed.password)
        logger.info("Application initialized successfully")

    def shutdown(self) -> None:
        if self.gateway is not None:
            self.gateway.stop()
        logger.info("SESMine access layer stopped")


def create_sesmine_app(settings: Optional[Settings] = None, **overrides) -> SesmineApp:
    """Load settings, configure logging and build the container."""
    settings = settings or load_settings()
    log = settings.logging
    setup_logger(
        log_level=log.level,
        log_format=log.format,
        file_path=log.file_path,
        max_bytes=log.max_bytes,
        backup_count=log.backup_count,
    )
    return SesmineApp(settings, **overrides)
