"""
Entitlement catalog: resource id -> Resource, loaded once at startup.

The YAML layout is a list under `resources:`; each entry needs id,
display_name and min_tier, the rest is descriptive metadata.
"""

from __future__ import annotations

from importlib import resources as importlib_resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import ConfigError, UnknownResourceError
from ..utils.logger import get_logger
from .models import Resource, ResourceKind

logger = get_logger(__name__)

DEFAULT_CATALOG_RESOURCE = "default_catalog.yaml"


class EntitlementCatalog:
    """Read-only mapping of gated resources."""

    def __init__(self, entries: Iterable[Resource]):
        index: Dict[str, Resource] = {}
        for entry in entries:
            if entry.id in index:
                raise ConfigError(f"Duplicate resource id in catalog: {entry.id}")
            index[entry.id] = entry
        self._entries: Mapping[str, Resource] = MappingProxyType(index)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._entries

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, resource_id: str) -> Resource:
        """Return the resource or raise UnknownResourceError."""
        try:
            return self._entries[resource_id]
        except KeyError:
            raise UnknownResourceError(resource_id) from None

    def find(self, resource_id: str) -> Optional[Resource]:
        return self._entries.get(resource_id)

    def list(self, kind: Optional[ResourceKind] = None) -> List[Resource]:
        if kind is None:
            return list(self._entries.values())
        return [r for r in self._entries.values() if r.kind == kind]

    @classmethod
    def from_dicts(cls, items: List[Dict[str, Any]]) -> "EntitlementCatalog":
        entries = []
        for item in items:
            try:
                entries.append(Resource(**item))
            except PydanticValidationError as e:
                raise ConfigError(f"Invalid catalog entry {item.get('id')!r}: {e}")
        return cls(entries)


def _parse(raw: Any, source: str) -> EntitlementCatalog:
    if not isinstance(raw, dict) or not isinstance(raw.get("resources"), list):
        raise ConfigError(f"Catalog {source} must define a 'resources' list")
    catalog = EntitlementCatalog.from_dicts(raw["resources"])
    logger.info("Entitlement catalog loaded", source=source, resources=len(catalog))
    return catalog


def load_catalog(path: Optional[Path] = None) -> EntitlementCatalog:
    """Load a catalog file, or the packaged default when no path is given."""
    if path is None:
        text = (
            importlib_resources.files("sesmine.catalog")
            .joinpath(DEFAULT_CATALOG_RESOURCE)
            .read_text(encoding="utf-8")
        )
        return _parse(yaml.safe_load(text), DEFAULT_CATALOG_RESOURCE)

    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load catalog from {path}: {e}")
    return _parse(raw, str(path))
