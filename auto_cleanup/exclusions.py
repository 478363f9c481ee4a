# auto-cleanup — exclusion lists
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# Four plain-text lists, one name per line. Matching is exact and
# case-sensitive; an excluded namespace protects every resource in it.

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .models import ResourceKind

log = logging.getLogger(__name__)

EXCLUSION_FILES = {
    "namespaces": "exclude_namespaces.txt",
    ResourceKind.DEPLOYMENT: "exclude_deployments.txt",
    ResourceKind.POD: "exclude_pods.txt",
    ResourceKind.SERVICE: "exclude_services.txt",
}


def load_list(path: Path) -> list[str]:
    """Read names from path, dropping # comments and blank lines. Missing file -> []."""
    path = Path(path)
    if not path.is_file():
        return []
    names = []
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if line:
                names.append(line)
    return names


@dataclass(frozen=True)
class ExclusionSet:
    namespaces: frozenset[str] = frozenset()
    deployments: frozenset[str] = frozenset()
    pods: frozenset[str] = frozenset()
    services: frozenset[str] = frozenset()

    def _names_for(self, kind: ResourceKind | str) -> frozenset[str]:
        try:
            kind = ResourceKind(kind)
        except ValueError:
            return frozenset()
        if kind is ResourceKind.DEPLOYMENT:
            return self.deployments
        if kind is ResourceKind.POD:
            return self.pods
        return self.services

    def namespace_excluded(self, namespace: str) -> bool:
        return namespace in self.namespaces

    def is_excluded(self, kind: ResourceKind | str, name: str, namespace: str) -> bool:
        if namespace in self.namespaces:
            return True
        return name in self._names_for(kind)


def load_exclusions(paths: dict) -> ExclusionSet:
    """Build an ExclusionSet from a mapping of list key -> file path.

    Keys are "namespaces" or a ResourceKind, as in EXCLUSION_FILES.
    """
    loaded = {key: frozenset(load_list(p)) for key, p in paths.items()}
    exclusions = ExclusionSet(
        namespaces=loaded.get("namespaces", frozenset()),
        deployments=loaded.get(ResourceKind.DEPLOYMENT, frozenset()),
        pods=loaded.get(ResourceKind.POD, frozenset()),
        services=loaded.get(ResourceKind.SERVICE, frozenset()),
    )
    log.info(
        "Loaded exclusions: namespaces=%d, deployments=%d, pods=%d, services=%d",
        len(exclusions.namespaces),
        len(exclusions.deployments),
        len(exclusions.pods),
        len(exclusions.services),
    )
    return exclusions


def exclusion_paths(directory: Path) -> dict:
    directory = Path(directory)
    return {key: directory / filename for key, filename in EXCLUSION_FILES.items()}
