"""
Credential store: principal records and their access request history.

Layout under <data_dir>:
    principals/<principal_id>.json   authoritative record (grants + requests)
    emails/<sha256(normalized email)>.json   unique email index -> principal id
    requests/<request_id>.json       derived request id -> principal id index

Every mutation of a principal runs inside transaction(principal_id), which
holds that principal's lock for the whole read-check-write.
"""

from __future__ import annotations

import hashlib
import unicodedata
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, Iterator, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError

from ..auth.credentials import CredentialPolicy
from ..auth.models import AccessRequest, Decision, Principal
from ..catalog.catalog import EntitlementCatalog
from ..core.clock import Clock, utcnow
from ..core.locks import KeyedLocks, lock_key_email, lock_key_principal
from ..core.tiers import PrincipalStatus, Role, Tier
from ..utils.exceptions import (
    DuplicateIdentityError,
    DuplicatePendingError,
    InvalidCredentialError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..utils.logger import get_logger
from .documents import DocumentStore

logger = get_logger(__name__)

PROFILE_FIELDS = frozenset({"name", "company", "phone", "notes"})
UPDATABLE_FIELDS = PROFILE_FIELDS | {"tier", "role", "status", "last_authenticated_at"}
IMMUTABLE_FIELDS = frozenset({"id", "email"})
_ENUM_FIELDS = {"tier": Tier, "role": Role, "status": PrincipalStatus}

RequestPrecondition = Callable[[Principal], None]


def normalize_email(email: str) -> str:
    """
    Canonical form of an address: email-validator's normalization
    (NFC local part, IDNA domain), then lower-cased.

    Both the uniqueness index and the stored record use this value.
    """
    email = email.strip()
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        # Invalid addresses fail Principal validation on create.
        pass
    return unicodedata.normalize("NFC", email.lower())


def email_digest(email: str) -> str:
    return hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()


class PrincipalStore:
    """Owns Principal and AccessRequest records."""

    def __init__(
        self,
        data_dir: Path,
        catalog: EntitlementCatalog,
        credentials: CredentialPolicy,
        locks: KeyedLocks,
        clock: Clock = utcnow,
    ):
        data_dir = Path(data_dir)
        self.catalog = catalog
        self.credentials = credentials
        self.locks = locks
        self.clock = clock
        self._principals = DocumentStore(data_dir / "principals")
        self._emails = DocumentStore(data_dir / "emails")
        self._requests = DocumentStore(data_dir / "requests")

    # ------------------------------------------------------------------ reads

    def _load(self, principal_id: str) -> Optional[Principal]:
        try:
            doc = self._principals.get(principal_id)
        except ValueError:
            return None
        if doc is None:
            return None
        try:
            return Principal(**doc)
        except PydanticValidationError as e:
            raise PersistenceError(
                f"Corrupt principal record {principal_id}: {e}", {"principal_id": principal_id}
            )

    def find_principal(self, principal_id: str) -> Optional[Principal]:
        return self._load(principal_id)

    def get_principal(self, principal_id: str) -> Principal:
        principal = self._load(principal_id)
        if principal is None:
            raise NotFoundError("Principal", principal_id)
        return principal

    def find_by_email(self, email: str) -> Optional[Principal]:
        entry = self._emails.get(email_digest(email))
        if entry is None:
            return None
        return self._load(entry["principal_id"])

    def iter_principals(self) -> Iterator[Principal]:
        for key in self._principals.keys():
            principal = self._load(key)
            if principal is not None:
                yield principal

    def list_principals(self) -> List[Principal]:
        return sorted(self.iter_principals(), key=lambda p: p.created_at)

    def count(self) -> int:
        return sum(1 for _ in self._principals.keys())

    def find_request_owner(self, request_id: str) -> Optional[str]:
        try:
            entry = self._requests.get(request_id)
        except ValueError:
            return None
        return entry["principal_id"] if entry else None

    # ------------------------------------------------------------ credentials

    def create_principal(
        self,
        email: str,
        credential: str,
        tier: Tier = Tier.FREE,
        role: Role = Role.USER,
        status: PrincipalStatus = PrincipalStatus.ACTIVE,
        **profile: str,
    ) -> Principal:
        """
        Register a new principal.

        Raises DuplicateIdentityError if the normalized email is taken,
        InvalidCredentialError if the credential fails policy.
        """
        unknown = set(profile) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not a profile field")
        self.credentials.check_strength(credential)

        email = normalize_email(email)
        digest = email_digest(email)
        with self.locks.acquire(lock_key_email(digest)):
            if self._emails.exists(digest):
                raise DuplicateIdentityError(email)
            try:
                principal = Principal(
                    email=email,
                    credential_hash=self.credentials.hash_credential(credential),
                    tier=tier,
                    role=role,
                    status=status,
                    created_at=self.clock(),
                    **profile,
                )
            except PydanticValidationError as e:
                error = e.errors()[0]
                raise ValidationError(str(error["loc"][0]), error["msg"])
            self._principals.put(principal.id, principal.to_document())
            try:
                self._emails.put(digest, {"principal_id": principal.id})
            except Exception:
                self._principals.delete(principal.id)
                logger.error("Email index write failed, principal rolled back", principal_id=principal.id)
                raise

        logger.info("Principal created", principal_id=principal.id, role=role.value, tier=tier.value)
        return principal

    def verify_credential(self, email: str, credential: str) -> Principal:
        """Return the principal for a matching credential. No side effects."""
        principal = self.find_by_email(email)
        if principal is None:
            raise NotFoundError("Principal", normalize_email(email))
        if not self.credentials.verify(credential, principal.credential_hash):
            raise InvalidCredentialError()
        return principal

    # -------------------------------------------------------------- mutations

    @contextmanager
    def transaction(self, principal_id: str) -> Generator[Principal, None, None]:
        """
        Lock, load and yield a principal; persist it if the block exits cleanly.

        An exception inside the block leaves the stored record untouched.
        """
        with self.locks.acquire(lock_key_principal(principal_id)):
            principal = self.get_principal(principal_id)
            yield principal
            principal.updated_at = self.clock()
            self._principals.put(principal.id, principal.to_document())

    def update_principal(self, principal_id: str, **fields) -> Principal:
        """Merge fields into a principal. id and email can never change."""
        for name in fields:
            if name in IMMUTABLE_FIELDS:
                raise ValidationError(name, "cannot be changed")
            if name not in UPDATABLE_FIELDS:
                raise ValidationError(name, "unknown field")
        for name, enum_type in _ENUM_FIELDS.items():
            if name in fields:
                try:
                    fields[name] = enum_type(fields[name])
                except ValueError:
                    raise ValidationError(name, f"unknown value {fields[name]!r}") from None

        with self.transaction(principal_id) as principal:
            try:
                for name, value in fields.items():
                    setattr(principal, name, value)
            except PydanticValidationError as e:
                error = e.errors()[0]
                raise ValidationError(str(error["loc"][0]), error["msg"])
        return principal

    def grant_resource(self, principal_id: str, resource_id: str) -> Principal:
        """Add a custom grant. Idempotent."""
        self.catalog.get(resource_id)
        with self.transaction(principal_id) as principal:
            added = resource_id not in principal.custom_grants
            principal.custom_grants.add(resource_id)
        if added:
            logger.info("Custom grant added", principal_id=principal_id, resource_id=resource_id)
        return principal

    def append_request(
        self,
        principal_id: str,
        request: AccessRequest,
        precondition: Optional[RequestPrecondition] = None,
    ) -> AccessRequest:
        """
        Append a pending request to the principal's history.

        `precondition` runs under the principal's lock against the fresh
        record and may raise to abort. Raises DuplicatePendingError if a
        pending request for the same resource exists.
        """
        self.catalog.get(request.resource_id)
        with self.transaction(principal_id) as principal:
            if precondition is not None:
                precondition(principal)
            existing = principal.pending_request_for(request.resource_id)
            if existing is not None:
                raise DuplicatePendingError(principal_id, request.resource_id, existing.id)
            principal.requests.append(request)
            self._requests.put(request.id, {"principal_id": principal_id})
        return request

    def resolve_request(
        self,
        principal_id: str,
        request_id: str,
        decision: Decision,
        resolved_by: Optional[str] = None,
    ) -> AccessRequest:
        """
        Approve or deny a pending request.

        Approval adds the custom grant in the same record write as the status
        change; if either step fails nothing is persisted.
        """
        with self.transaction(principal_id) as principal:
            request = principal.find_request(request_id)
            if request is None:
                raise NotFoundError("AccessRequest", request_id)
            if decision is Decision.APPROVE:
                self.catalog.get(request.resource_id)
            request.transition(decision, self.clock(), resolved_by)
            if decision is Decision.APPROVE:
                principal.custom_grants.add(request.resource_id)
        return request
