"""
Access request workflow.

    pending --approve--> approved   (adds a custom grant)
    pending --deny-----> denied

Resolved requests are never reopened or deleted; to try again after a
denial the principal submits a new request.
"""

from __future__ import annotations

from typing import List, Optional

from ..access.engine import AccessDecisionEngine
from ..auth.models import AccessRequest, Decision, Principal
from ..notifications.gateway import EventKind, Notifier, safe_notify
from ..stores.principals import PrincipalStore
from ..utils.exceptions import AlreadyGrantedError, NotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AccessRequestWorkflow:
    def __init__(self, store: PrincipalStore, engine: AccessDecisionEngine, notifier: Notifier):
        self.store = store
        self.engine = engine
        self.notifier = notifier

    def submit(self, principal_id: str, resource_id: str, reason: Optional[str] = None) -> AccessRequest:
        """
        Record a pending request for a resource the principal cannot use yet.

        Raises UnknownResourceError, AlreadyGrantedError or DuplicatePendingError.
        The checks and the insert happen under the principal's lock.
        """
        resource = self.store.catalog.get(resource_id)

        def not_already_allowed(principal: Principal) -> None:
            if self.engine.decide(principal, resource_id).allowed:
                raise AlreadyGrantedError(principal_id, resource_id)

        request = AccessRequest(
            principal_id=principal_id,
            resource_id=resource_id,
            reason=(reason or "").strip() or None,
            requested_at=self.store.clock(),
        )
        self.store.append_request(principal_id, request, precondition=not_already_allowed)

        logger.info(
            "Access request submitted",
            request_id=request.id,
            principal_id=principal_id,
            resource_id=resource_id,
        )
        safe_notify(
            self.notifier,
            EventKind.REQUEST_SUBMITTED,
            principal_id,
            {
                "request_id": request.id,
                "resource_id": resource_id,
                "resource_name": resource.display_name,
                "reason": request.reason,
            },
        )
        return request

    def resolve(self, request_id: str, decision: Decision | str, resolved_by: Optional[str] = None) -> AccessRequest:
        """
        Approve or deny a pending request.

        Raises NotFoundError for unknown ids and AlreadyResolvedError if the
        request has left pending; a second resolve never rewrites resolved_at.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError("decision", "must be approve or deny") from None
        principal_id = self.store.find_request_owner(request_id)
        if principal_id is None:
            raise NotFoundError("AccessRequest", request_id)

        request = self.store.resolve_request(principal_id, request_id, decision, resolved_by)

        logger.info(
            "Access request resolved",
            request_id=request_id,
            principal_id=principal_id,
            resource_id=request.resource_id,
            status=request.status.value,
            resolved_by=resolved_by,
        )
        safe_notify(
            self.notifier,
            EventKind.REQUEST_RESOLVED,
            principal_id,
            {
                "request_id": request_id,
                "resource_id": request.resource_id,
                "decision": decision.value,
                "status": request.status.value,
            },
        )
        return request

    def get_request(self, request_id: str) -> AccessRequest:
        principal_id = self.store.find_request_owner(request_id)
        principal = self.store.find_principal(principal_id) if principal_id else None
        request = principal.find_request(request_id) if principal else None
        if request is None:
            raise NotFoundError("AccessRequest", request_id)
        return request

    def list_requests(self, principal_id: str) -> List[AccessRequest]:
        return list(self.store.get_principal(principal_id).requests)

    def list_pending(self) -> List[AccessRequest]:
        """Every pending request across principals, oldest first."""
        pending = [
            request
            for principal in self.store.iter_principals()
            for request in principal.requests
            if request.is_pending
        ]
        return sorted(pending, key=lambda r: r.requested_at)
