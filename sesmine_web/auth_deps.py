"""
FastAPI dependencies for authentication and authorization.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from sesmine.app import SesmineApp
from sesmine.auth.models import Principal


def get_sesmine(request: Request) -> SesmineApp:
    """The container built at startup, stored on app.state"""
    return request.app.state.sesmine


def get_session_token(request: Request) -> Optional[str]:
    """Extract session token from request (cookie or Authorization header)"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None

    cookie_name = get_sesmine(request).settings.sessions.cookie_name
    return request.cookies.get(cookie_name) or None


def get_current_principal(request: Request) -> Principal:
    """Dependency to get the current authenticated principal"""
    token = get_session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = get_sesmine(request).sessions.validate(token)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return principal


def require_admin(current: Principal = Depends(get_current_principal)) -> Principal:
    if not current.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires admin role",
        )
    return current


require_auth = get_current_principal
