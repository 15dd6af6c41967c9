"""
Principal, session and access request records.

Principals are stored one JSON document per id; access requests live
inside their principal's document as an ordered child collection.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..core.clock import utcnow
from ..core.tiers import PrincipalStatus, Role, Tier
from ..utils.exceptions import AlreadyResolvedError


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class Decision(str, Enum):
    APPROVE = "approve"
    DENY = "deny"

    @property
    def target_status(self) -> RequestStatus:
        return RequestStatus.APPROVED if self is Decision.APPROVE else RequestStatus.DENIED


# Only these transitions exist; approved and denied are terminal.
_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.DENIED},
    RequestStatus.APPROVED: set(),
    RequestStatus.DENIED: set(),
}


class AccessRequest(BaseModel):
    """A principal's ask for a resource they do not currently qualify for."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    principal_id: str
    resource_id: str
    reason: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    requested_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def transition(self, decision: Decision, at: datetime, resolved_by: Optional[str] = None) -> None:
        """Move out of pending. Raises AlreadyResolvedError from a terminal state."""
        target = decision.target_status
        if target not in _TRANSITIONS[self.status]:
            raise AlreadyResolvedError(self.id, self.status.value)
        self.status = target
        self.resolved_at = at
        self.resolved_by = resolved_by


class Principal(BaseModel):
    """Authenticated identity with a tier, grants and request history."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    email: EmailStr
    credential_hash: str
    tier: Tier = Tier.FREE
    role: Role = Role.USER
    status: PrincipalStatus = PrincipalStatus.ACTIVE
    name: str = ""
    company: str = ""
    phone: str = ""
    notes: str = ""
    custom_grants: Set[str] = Field(default_factory=set)
    requests: List[AccessRequest] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    last_authenticated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == PrincipalStatus.ACTIVE

    def find_request(self, request_id: str) -> Optional[AccessRequest]:
        return next((r for r in self.requests if r.id == request_id), None)

    def pending_request_for(self, resource_id: str) -> Optional[AccessRequest]:
        return next(
            (r for r in self.requests if r.resource_id == resource_id and r.is_pending),
            None,
        )

    def to_document(self) -> dict:
        doc = self.model_dump(mode="json")
        doc["custom_grants"] = sorted(self.custom_grants)
        return doc


class Session(BaseModel):
    """Time-bounded binding of an opaque token to a principal."""

    principal_id: str
    token: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
