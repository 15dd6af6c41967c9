"""
Account flows on top of the credential store and session manager:
registration, login/logout and admin user management.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..auth.models import Principal, Session
from ..auth.sessions import SessionManager
from ..core.tiers import PREMIUM_TIERS, PrincipalStatus, Role, Tier
from ..notifications.gateway import EventKind, Notifier, safe_notify
from ..stores.principals import PrincipalStore
from ..utils.exceptions import AccountSuspendedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrincipalFilter:
    search: str = ""
    tier: Optional[Tier] = None
    role: Optional[Role] = None
    status: Optional[PrincipalStatus] = None

    def matches(self, principal: Principal) -> bool:
        term = self.search.strip().lower()
        if term and not any(
            term in (value or "").lower()
            for value in (principal.name, principal.email, principal.company)
        ):
            return False
        if self.tier is not None and principal.tier != self.tier:
            return False
        if self.role is not None and principal.role != self.role:
            return False
        if self.status is not None and principal.status != self.status:
            return False
        return True


class AccountService:
    def __init__(self, store: PrincipalStore, sessions: SessionManager, notifier: Notifier):
        self.store = store
        self.sessions = sessions
        self.notifier = notifier

    def register(self, email: str, credential: str, **profile: str) -> Tuple[Principal, Session]:
        """Create a principal and sign them in."""
        principal = self.store.create_principal(email, credential, **profile)
        session = self.sessions.issue(principal.id)
        principal = self.store.update_principal(principal.id, last_authenticated_at=session.issued_at)
        safe_notify(
            self.notifier,
            EventKind.PRINCIPAL_REGISTERED,
            principal.id,
            {"email": principal.email, "name": principal.name, "tier": principal.tier.value},
        )
        return principal, session

    def login(self, email: str, credential: str) -> Tuple[Principal, Session]:
        """
        Verify the credential and issue a session, replacing any earlier one.

        Raises NotFoundError / InvalidCredentialError from the store and
        AccountSuspendedError for suspended principals.
        """
        principal = self.store.verify_credential(email, credential)
        if not principal.is_active:
            logger.warning("Login refused for suspended principal", principal_id=principal.id)
            raise AccountSuspendedError(principal.id)
        session = self.sessions.issue(principal.id)
        principal = self.store.update_principal(principal.id, last_authenticated_at=session.issued_at)
        logger.info("Principal logged in", principal_id=principal.id)
        safe_notify(
            self.notifier,
            EventKind.PRINCIPAL_LOGGED_IN,
            principal.id,
            {"email": principal.email, "at": session.issued_at.isoformat()},
        )
        return principal, session

    def logout(self, token: str) -> None:
        self.sessions.revoke(token)

    # ------------------------------------------------------------------ admin

    def list_principals(self, principal_filter: Optional[PrincipalFilter] = None) -> List[Principal]:
        principal_filter = principal_filter or PrincipalFilter()
        return [p for p in self.store.list_principals() if principal_filter.matches(p)]

    def stats(self, now: datetime) -> Dict[str, int]:
        """Dashboard counters: total, active, premium, new this month."""
        principals = self.store.list_principals()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return {
            "total": len(principals),
            "active": sum(1 for p in principals if p.is_active),
            "premium": sum(1 for p in principals if p.tier in PREMIUM_TIERS),
            "new_this_month": sum(1 for p in principals if p.created_at >= month_start),
        }

    def create_principal(
        self,
        email: str,
        credential: str,
        tier: Tier = Tier.FREE,
        role: Role = Role.USER,
        status: PrincipalStatus = PrincipalStatus.ACTIVE,
        created_by: Optional[str] = None,
        notify: bool = True,
        **profile: str,
    ) -> Principal:
        """
        Admin-created principal with a chosen tier, role and status.

        No session is issued; the new principal signs in with the credential
        the admin set. notify=False skips the principal_registered event.
        """
        principal = self.store.create_principal(
            email, credential, tier=Tier(tier), role=Role(role), status=PrincipalStatus(status), **profile
        )
        logger.info(
            "Principal created by admin",
            principal_id=principal.id,
            created_by=created_by,
            tier=principal.tier.value,
            role=principal.role.value,
            status=principal.status.value,
        )
        if notify:
            safe_notify(
                self.notifier,
                EventKind.PRINCIPAL_REGISTERED,
                principal.id,
                {
                    "email": principal.email,
                    "name": principal.name,
                    "tier": principal.tier.value,
                    "created_by": created_by,
                },
            )
        return principal

    def update_principal(self, principal_id: str, changed_by: Optional[str] = None, **fields: Any) -> Principal:
        """
        Admin edit of tier/role/status/profile fields.

        Suspending a principal also ends their session.
        """
        if not fields:
            return self.store.get_principal(principal_id)
        principal = self.store.update_principal(principal_id, **fields)
        if principal.status == PrincipalStatus.SUSPENDED:
            self.sessions.revoke_principal(principal_id)

        changes = {
            name: value.value if hasattr(value, "value") else value
            for name, value in fields.items()
        }
        logger.info("Principal updated", principal_id=principal_id, changed_by=changed_by, fields=sorted(fields))
        safe_notify(
            self.notifier,
            EventKind.PRINCIPAL_UPDATED,
            principal_id,
            {"changes": changes, "tier": principal.tier.value, "changed_by": changed_by},
        )
        return principal

    def grant(self, principal_id: str, resource_id: str) -> Principal:
        return self.store.grant_resource(principal_id, resource_id)

    def ensure_admin(self, email: Optional[str], credential: Optional[str]) -> Optional[Principal]:
        """
        Seed the first admin when the store is empty.

        Idempotent: does nothing once any principal exists.
        """
        if not email or not credential:
            return None
        if self.store.count() > 0:
            return None
        admin = self.store.create_principal(email, credential, tier=Tier.ENTERPRISE, role=Role.ADMIN)
        logger.info("Seed admin created", principal_id=admin.id)
        return admin

