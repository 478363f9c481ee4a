# auto-cleanup — shared data types
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Label that suppresses soft-limit deletion when set to "true".
KEEP_ALIVE_LABEL = "keep-alive"


class ResourceKind(Enum):
    """Resource kinds the cleaner evaluates. Values are kubectl resource names."""

    DEPLOYMENT = "deployment"
    POD = "pod"
    SERVICE = "service"

    @property
    def title(self) -> str:
        return self.value.capitalize()


class TenantClass(Enum):
    """Tenant classes, declared in prefix-matching priority order."""

    STUDENT = "student"
    FACULTY = "faculty"
    INDUSTRY = "industry"


class Action(Enum):
    DELETE_NOW = "delete-now"
    ENQUEUE = "enqueue"
    PRESERVE = "preserve"


@dataclass(frozen=True)
class KindPolicy:
    enabled: bool = False
    hard_enabled: bool = False
    soft_enabled: bool = False

    @property
    def active(self) -> bool:
        """A kind is processed only when enabled and at least one limit is on."""
        return self.enabled and (self.hard_enabled or self.soft_enabled)


@dataclass(frozen=True)
class RetentionPolicy:
    tenant: TenantClass
    soft_minutes: int
    hard_minutes: int


@dataclass(frozen=True)
class ResourceRecord:
    kind: ResourceKind
    name: str
    namespace: str
    age_minutes: int = 0


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: str


@dataclass(frozen=True)
class PodDeleteSettings:
    batch_size: int = 50
    force: bool = False
    background: bool = True
    max_concurrency: int = 4
    drain_timeout: int = 600
