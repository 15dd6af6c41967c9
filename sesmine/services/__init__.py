"""Account and access-request workflows"""

from .access_requests import AccessRequestWorkflow
from .accounts import AccountService, PrincipalFilter

__all__ = ["AccessRequestWorkflow", "AccountService", "PrincipalFilter"]
