"""Identity: principals, credentials and sessions"""

from .credentials import BcryptCredentialPolicy, CredentialPolicy
from .models import AccessRequest, Decision, Principal, RequestStatus, Session

__all__ = [
    "BcryptCredentialPolicy",
    "CredentialPolicy",
    "AccessRequest",
    "Decision",
    "Principal",
    "RequestStatus",
    "Session",
]
