"""Entitlement catalog"""

from .catalog import EntitlementCatalog, load_catalog
from .models import HubModule, Resource, ResourceKind

__all__ = ["EntitlementCatalog", "load_catalog", "HubModule", "Resource", "ResourceKind"]
