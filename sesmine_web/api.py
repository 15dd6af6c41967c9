"""API routes for the SESMine access layer"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from sesmine.app import SesmineApp
from sesmine.auth.models import Principal, Session
from sesmine.catalog.models import ResourceKind
from sesmine.core.tiers import PrincipalStatus, Role, Tier
from sesmine.services.accounts import PrincipalFilter
from sesmine.utils.logger import get_logger

from .auth_deps import get_current_principal, get_session_token, get_sesmine, require_admin
from .models import (
    AccessRequestCreate,
    AccessRequestResponse,
    GrantRequest,
    LoginRequest,
    PrincipalCreate,
    PrincipalResponse,
    PrincipalUpdate,
    RegisterRequest,
    ResolveRequest,
    resource_dict,
)

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
access_router = APIRouter(prefix="/access", tags=["access"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


def _session_response(
    sesmine: SesmineApp, payload: dict, session: Session, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    """JSON response carrying the token and setting the session cookie"""
    settings = sesmine.settings
    response = JSONResponse(
        {
            **payload,
            "token": session.token,
            "expires_at": session.expires_at.isoformat(),
            "refresh_interval_minutes": settings.sessions.refresh_interval_minutes,
        },
        status_code=status_code,
    )
    response.set_cookie(
        key=settings.sessions.cookie_name,
        value=session.token,
        max_age=int(settings.sessions.timeout_hours * 60 * 60),
        httponly=True,
        secure=settings.app.environment == "production",
        samesite="lax",
    )
    return response


# --------------------------------------------------------------------- auth


@auth_router.post("/register")
def register(data: RegisterRequest, sesmine: SesmineApp = Depends(get_sesmine)):
    """Self-register a free-tier principal and sign them in"""
    principal, session = sesmine.accounts.register(
        data.email, data.password, name=data.name, company=data.company, phone=data.phone
    )
    return _session_response(
        sesmine,
        {
            "status": "success",
            "message": "Registration successful",
            "principal": PrincipalResponse.from_principal(principal).model_dump(mode="json"),
        },
        session,
        status.HTTP_201_CREATED,
    )


@auth_router.post("/login")
def login(data: LoginRequest, sesmine: SesmineApp = Depends(get_sesmine)):
    """Login with email and password"""
    principal, session = sesmine.accounts.login(data.email, data.password)
    return _session_response(
        sesmine,
        {
            "status": "success",
            "message": "Login successful",
            "principal": PrincipalResponse.from_principal(principal).model_dump(mode="json"),
        },
        session,
    )


@auth_router.post("/logout")
def logout(request: Request, sesmine: SesmineApp = Depends(get_sesmine)):
    """Logout and clear session"""
    token = get_session_token(request)
    if token:
        sesmine.accounts.logout(token)
    response = JSONResponse({"status": "success", "message": "Logged out"})
    response.delete_cookie(key=sesmine.settings.sessions.cookie_name)
    return response


@auth_router.post("/refresh")
def refresh(request: Request, sesmine: SesmineApp = Depends(get_sesmine)):
    """Extend the current session"""
    token = get_session_token(request)
    session = sesmine.sessions.refresh(token) if token else None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _session_response(sesmine, {"status": "success"}, session)


@auth_router.get("/me")
def me(
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    """Current principal with the resources they can use"""
    return {
        "principal": PrincipalResponse.from_principal(current).model_dump(mode="json"),
        "accessible": [r.id for r in sesmine.engine.accessible_resources(current)],
        "refresh_interval_minutes": sesmine.settings.sessions.refresh_interval_minutes,
    }


# ------------------------------------------------------------------- access


@access_router.get("/resources")
def list_resources(
    kind: Optional[ResourceKind] = None,
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    """Catalog entries, each with the decision for the caller"""
    return {
        "resources": [
            {**resource_dict(r), "decision": sesmine.engine.decide(current, r.id).to_dict()}
            for r in sesmine.catalog.list(kind)
        ]
    }


@access_router.get("/resources/accessible")
def list_accessible(
    kind: Optional[ResourceKind] = None,
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    return {"resources": [resource_dict(r) for r in sesmine.engine.accessible_resources(current, kind)]}


@access_router.get("/resources/{resource_id}/decision")
def get_decision(
    resource_id: str,
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    return sesmine.engine.decide(current, resource_id).to_dict()


@access_router.post("/requests", status_code=status.HTTP_201_CREATED)
def submit_request(
    data: AccessRequestCreate,
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    """Ask for access to a resource above the caller's tier"""
    request = sesmine.requests.submit(current.id, data.resource_id, data.reason)
    return AccessRequestResponse.from_request(request).model_dump(mode="json")


@access_router.get("/requests")
def list_my_requests(
    current: Principal = Depends(get_current_principal),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    return {
        "requests": [
            AccessRequestResponse.from_request(r).model_dump(mode="json")
            for r in sesmine.requests.list_requests(current.id)
        ]
    }


# -------------------------------------------------------------------- admin


@admin_router.get("/requests/pending")
def list_pending(
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    return {
        "requests": [
            AccessRequestResponse.from_request(r).model_dump(mode="json")
            for r in sesmine.requests.list_pending()
        ]
    }


@admin_router.post("/requests/{request_id}/resolve")
def resolve_request(
    request_id: str,
    data: ResolveRequest,
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    request = sesmine.requests.resolve(request_id, data.decision, resolved_by=admin.id)
    return AccessRequestResponse.from_request(request).model_dump(mode="json")


@admin_router.get("/principals")
def list_principals(
    search: str = "",
    tier: Optional[Tier] = None,
    role: Optional[Role] = None,
    status_filter: Optional[PrincipalStatus] = Query(default=None, alias="status"),
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    principal_filter = PrincipalFilter(search=search, tier=tier, role=role, status=status_filter)
    return {
        "principals": [
            PrincipalResponse.from_principal(p).model_dump(mode="json")
            for p in sesmine.accounts.list_principals(principal_filter)
        ]
    }


@admin_router.post("/principals", status_code=status.HTTP_201_CREATED)
def create_principal(
    data: PrincipalCreate,
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    """Create a principal with a chosen tier, role and status"""
    principal = sesmine.accounts.create_principal(
        data.email,
        data.password,
        tier=data.tier,
        role=data.role,
        status=data.status,
        created_by=admin.id,
        notify=data.send_notification,
        **data.profile(),
    )
    return PrincipalResponse.from_principal(principal).model_dump(mode="json")


@admin_router.get("/stats")
def get_stats(
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    return sesmine.accounts.stats(sesmine.clock())


@admin_router.patch("/principals/{principal_id}")
def update_principal(
    principal_id: str,
    data: PrincipalUpdate,
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    principal = sesmine.accounts.update_principal(principal_id, changed_by=admin.id, **data.changes())
    return PrincipalResponse.from_principal(principal).model_dump(mode="json")


@admin_router.post("/principals/{principal_id}/grants")
def grant_resource(
    principal_id: str,
    data: GrantRequest,
    admin: Principal = Depends(require_admin),
    sesmine: SesmineApp = Depends(get_sesmine),
):
    """Direct custom grant, outside the request workflow"""
    principal = sesmine.accounts.grant(principal_id, data.resource_id)
    logger.info("Admin grant issued", principal_id=principal_id, resource_id=data.resource_id, granted_by=admin.id)
    return PrincipalResponse.from_principal(principal).model_dump(mode="json")
