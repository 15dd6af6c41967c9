"""Catalog entries: hubs, products and plan features share one Resource type."""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict

from ..core.tiers import Tier


class ResourceKind(str, Enum):
    HUB = "hub"
    PRODUCT = "product"
    FEATURE = "feature"


class HubModule(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str = ""


class Resource(BaseModel):
    """Gated catalog entry. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    min_tier: Tier
    kind: ResourceKind = ResourceKind.FEATURE
    description: str = ""
    features: Tuple[str, ...] = ()
    modules: Tuple[HubModule, ...] = ()
