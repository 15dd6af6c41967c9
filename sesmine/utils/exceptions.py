"""Exceptions for the SESMine access layer"""

from typing import Any, Dict, Optional


class SesmineError(Exception):
    """Base exception for SESMine.

    `code` is machine-readable; `http_status` is what the web layer answers with.
    """

    code = "sesmine_error"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(SesmineError):
    """Unknown principal, session, request or resource"""

    code = "not_found"
    http_status = 404

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}", {"kind": kind, "key": key})


class ValidationError(SesmineError):
    code = "validation_error"
    http_status = 422

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}", {"field": field})


class DuplicateIdentityError(SesmineError):
    code = "duplicate_identity"
    http_status = 409

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email is already registered", {"email": email})


class InvalidCredentialError(SesmineError):
    """Credential rejected by policy or by the verifier"""

    code = "invalid_credential"
    http_status = 401

    def __init__(self, message: str = "Invalid credential", violations: Optional[list] = None):
        self.violations = violations or []
        if self.violations:
            self.http_status = 422
        super().__init__(message, {"violations": self.violations} if self.violations else None)


class AccountSuspendedError(SesmineError):
    code = "account_suspended"
    http_status = 403

    def __init__(self, principal_id: str):
        self.principal_id = principal_id
        super().__init__("Account is suspended", {"principal_id": principal_id})


class UnknownResourceError(SesmineError):
    code = "unknown_resource"
    http_status = 404

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"Unknown resource: {resource_id}", {"resource_id": resource_id})


class InsufficientTierError(SesmineError):
    """Tier below the resource minimum. Carries both tiers for upgrade prompts."""

    code = "insufficient_tier"
    http_status = 403

    def __init__(self, resource_id: str, required: str, actual: str):
        self.resource_id = resource_id
        self.required = required
        self.actual = actual
        super().__init__(
            f"Resource {resource_id} requires the {required} tier",
            {"resource_id": resource_id, "required": required, "actual": actual},
        )


class AlreadyGrantedError(SesmineError):
    code = "already_granted"
    http_status = 409

    def __init__(self, principal_id: str, resource_id: str):
        super().__init__(
            "Access is already granted",
            {"principal_id": principal_id, "resource_id": resource_id},
        )


class DuplicatePendingError(SesmineError):
    code = "duplicate_pending"
    http_status = 409

    def __init__(self, principal_id: str, resource_id: str, request_id: str):
        self.request_id = request_id
        super().__init__(
            "A pending request already exists for this resource",
            {"principal_id": principal_id, "resource_id": resource_id, "request_id": request_id},
        )


class AlreadyResolvedError(SesmineError):
    code = "already_resolved"
    http_status = 409

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Request {request_id} is already {status}",
            {"request_id": request_id, "status": status},
        )


class PersistenceError(SesmineError):
    """Wraps storage failures. Always surfaced to the caller."""

    code = "persistence_failure"
    http_status = 503


class LockTimeoutError(PersistenceError):
    code = "lock_timeout"

    def __init__(self, key: str, timeout_seconds: float):
        self.key = key
        super().__init__(
            f"Could not acquire lock {key} within {timeout_seconds}s", {"key": key}
        )


class ConfigError(SesmineError):
    """Configuration error"""

    code = "config_error"
