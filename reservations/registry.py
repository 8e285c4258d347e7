"""Read-only lookup of resource specifications."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from tracking import t

from reservations.models import ResourceSpec, resource_from_payload


class ResourceRegistry:
    """In-memory index of :class:`ResourceSpec` records keyed by id."""

    def __init__(self, resources: Iterable[ResourceSpec] = (), *, logger: Any = None) -> None:
        t('reservations.registry.ResourceRegistry.__init__')
        self.logger = logger or logging.getLogger('ResourceRegistry')
        self._resources: Dict[str, ResourceSpec] = {}
        for resource in resources:
            self._resources[resource.id] = resource

    @classmethod
    def from_file(cls, file_path: str, *, logger: Any = None) -> "ResourceRegistry":
        """Load resources from a JSON list (or ``{"resources": [...]}``) file.

        A missing file yields an empty registry. Malformed entries are logged
        and skipped.
        """
        t('reservations.registry.ResourceRegistry.from_file')
        logger = logger or logging.getLogger('ResourceRegistry')
        path = Path(file_path)

        if not path.exists():
            logger.warning("Resource file %s does not exist; registry is empty", path)
            return cls((), logger=logger)

        with path.open('r', encoding='utf-8') as handle:
            payload = json.load(handle)
        if isinstance(payload, dict):
            payload = payload.get("resources") or []

        resources: List[ResourceSpec] = []
        for entry in payload:
            try:
                resources.append(resource_from_payload(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error("Skipping invalid resource entry %r: %s", entry, exc)

        logger.info("Loaded %s resources from %s", len(resources), path)
        return cls(resources, logger=logger)

    def get(self, resource_id: str) -> Optional[ResourceSpec]:
        return self._resources.get(resource_id)

    def require(self, resource_id: str) -> ResourceSpec:
        """Return the resource or raise ``KeyError``."""
        t('reservations.registry.ResourceRegistry.require')
        resource = self._resources.get(resource_id)
        if resource is None:
            raise KeyError(f"Unknown resource: {resource_id}")
        return resource

    def all(self) -> List[ResourceSpec]:
        return list(self._resources.values())

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._resources

    def __len__(self) -> int:
        return len(self._resources)
