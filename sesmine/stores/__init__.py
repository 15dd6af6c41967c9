"""JSON document persistence"""

from .documents import DocumentStore
from .principals import PrincipalStore

__all__ = ["DocumentStore", "PrincipalStore"]
