"""Request and response models for the web API"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sesmine.auth.models import AccessRequest, Principal
from sesmine.catalog.models import Resource
from sesmine.core.tiers import PrincipalStatus, Role, Tier


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str = ""
    company: str = ""
    phone: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class AccessRequestCreate(BaseModel):
    resource_id: str
    reason: Optional[str] = Field(default=None, max_length=2000)


class ResolveRequest(BaseModel):
    decision: str


class GrantRequest(BaseModel):
    resource_id: str


class PrincipalCreate(BaseModel):
    """Admin-created principal"""

    email: str
    password: str
    tier: Tier = Tier.FREE
    role: Role = Role.USER
    status: PrincipalStatus = PrincipalStatus.ACTIVE
    name: str = ""
    company: str = ""
    phone: str = ""
    notes: str = ""
    send_notification: bool = True

    def profile(self) -> Dict[str, str]:
        return {"name": self.name, "company": self.company, "phone": self.phone, "notes": self.notes}


class PrincipalUpdate(BaseModel):
    """Admin edit. Fields left out are not touched."""

    tier: Optional[Tier] = None
    role: Optional[Role] = None
    status: Optional[PrincipalStatus] = None
    name: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PrincipalResponse(BaseModel):
    """Principal as exposed over HTTP (no credential hash)"""

    id: str
    email: str
    name: str
    company: str
    phone: str
    tier: Tier
    role: Role
    status: PrincipalStatus
    custom_grants: List[str]
    created_at: datetime
    last_authenticated_at: Optional[datetime] = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            email=principal.email,
            name=principal.name,
            company=principal.company,
            phone=principal.phone,
            tier=principal.tier,
            role=principal.role,
            status=principal.status,
            custom_grants=sorted(principal.custom_grants),
            created_at=principal.created_at,
            last_authenticated_at=principal.last_authenticated_at,
        )


class AccessRequestResponse(BaseModel):
    id: str
    principal_id: str
    resource_id: str
    reason: Optional[str] = None
    status: str
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @classmethod
    def from_request(cls, request: AccessRequest) -> "AccessRequestResponse":
        return cls(
            id=request.id,
            principal_id=request.principal_id,
            resource_id=request.resource_id,
            reason=request.reason,
            status=request.status.value,
            requested_at=request.requested_at,
            resolved_at=request.resolved_at,
            resolved_by=request.resolved_by,
        )


def resource_dict(resource: Resource) -> Dict[str, Any]:
    return resource.model_dump(mode="json")
