# auto-cleanup — run orchestration
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# One run walks Deployments, then standalone Pods (queued), flushes the pod
# queue, then Services. The order is fixed.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from .config import CleanupConfig, ConfigError
from .decision import decide
from .exclusions import ExclusionSet
from .kubectl import ClusterResource, Kubectl
from .models import KEEP_ALIVE_LABEL, Action, Decision, ResourceKind, ResourceRecord, RetentionPolicy
from .policy import PolicyResolver
from .scheduler import PodBatchScheduler

log = logging.getLogger(__name__)

RUN_ORDER = (ResourceKind.DEPLOYMENT, ResourceKind.POD, ResourceKind.SERVICE)


def compute_age_minutes(timestamp: str, now_epoch: float) -> int:
    """Whole minutes since timestamp, clamped to 0. Unreadable timestamps give 0."""
    if not timestamp:
        return 0
    for fmt in ("%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            dt = datetime.strptime(timestamp, fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return max(int(now_epoch - dt.timestamp()) // 60, 0)
    return 0


@dataclass
class RunSummary:
    evaluated: int = 0
    deleted: int = 0
    queued: int = 0
    preserved: int = 0
    failed: int = 0
    pods_deleted: int = 0
    pods_failed: int = 0
    pod_batches: int = 0
    pod_batches_failed: int = 0


class Cleaner:
    def __init__(
        self,
        kubectl: Kubectl,
        config: CleanupConfig,
        resolver: PolicyResolver,
        exclusions: ExclusionSet,
        dry_run: bool = False,
        now_epoch: float | None = None,
    ):
        self._kc = kubectl
        self._config = config
        self._resolver = resolver
        self._exclusions = exclusions
        self._dry_run = dry_run
        self._now_epoch = now_epoch if now_epoch is not None else time.time()
        self.scheduler = PodBatchScheduler(self._delete_pods, config.pod)
        self.summary = RunSummary()

    # ------------------------------------------------------------------
    # Cluster adapters
    # ------------------------------------------------------------------
    def _delete_pods(self, names: list[str], namespace: str, force: bool, wait: bool) -> tuple[bool, str]:
        if self._dry_run:
            log.info("[DRY RUN] Would delete pods (%s) in ns=%s", " ".join(names), namespace)
            return True, "dry run"
        return self._kc.delete_pods(names, namespace, force=force, wait=wait)

    def _fetch_keep_alive(self, record: ResourceRecord) -> str | None:
        return self._kc.get_label(record.kind.value, record.name, record.namespace, KEEP_ALIVE_LABEL)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def preflight(self):
        """Resolve the policy of every tenant namespace before anything is deleted.

        Raises ConfigError when a live namespace maps to a tenant class whose
        limits are missing or invalid, or when such a class exists and the
        namespaces cannot be listed to rule it out.
        """
        if not any(self._config.kind_policy(kind).active for kind in RUN_ORDER):
            return
        broken = self._resolver.broken
        if not broken:
            return
        namespaces = self._kc.list_namespaces(self._config.namespace_pattern)
        if namespaces is None:
            raise ConfigError(
                "cannot list namespaces to check tenant limits: " + "; ".join(broken)
            )
        self._resolver.validate(namespaces)
        log.debug("Policy check passed for %d namespaces", len(namespaces))

    def run(self) -> RunSummary:
        self.preflight()
        try:
            self.process(ResourceKind.DEPLOYMENT)
            self.process(ResourceKind.POD)
            self.summary.pod_batches = self.scheduler.flush().batches
            self.process(ResourceKind.SERVICE)
        finally:
            self.scheduler.join()
            self.summary.pods_deleted = self.scheduler.deleted
            self.summary.pods_failed = self.scheduler.failed
            self.summary.pod_batches_failed = self.scheduler.failed_batches
        return self.summary

    def process(self, kind: ResourceKind):
        kind_policy = self._config.kind_policy(kind)
        if not kind_policy.active:
            if kind_policy.enabled:
                log.info("%s hard & soft both disabled -> %s checks disabled", kind.title, kind.title)
            else:
                log.info("%s checks disabled by config", kind.title)
            return

        log.info("Starting %s cleanup...", kind.title)
        for resource in self._kc.list_resources(kind.value, self._config.namespace_pattern):
            if kind is ResourceKind.POD and not self._pod_candidate(resource):
                continue

            policy = self._resolver.resolve(resource.namespace)
            if policy is None:
                continue

            record = ResourceRecord(
                kind=kind,
                name=resource.name,
                namespace=resource.namespace,
                age_minutes=compute_age_minutes(resource.creation_timestamp, self._now_epoch),
            )
            decision = decide(record, policy, kind_policy, self._exclusions, self._fetch_keep_alive)
            self._apply(record, policy, decision)
        log.info("%s cleanup completed", kind.title)

    def _pod_candidate(self, resource: ClusterResource) -> bool:
        # Cheap checks first; excluded pods never reach the owner lookup.
        if self._exclusions.namespace_excluded(resource.namespace):
            log.debug("Skipping pod %s (%s) -> namespace excluded", resource.name, resource.namespace)
            return False
        if self._exclusions.is_excluded(ResourceKind.POD, resource.name, resource.namespace):
            log.debug("Skipping pod %s (%s) -> explicitly excluded", resource.name, resource.namespace)
            return False
        return not resource.owner_references

    def _apply(self, record: ResourceRecord, policy: RetentionPolicy, decision: Decision):
        self.summary.evaluated += 1
        limits = f"age={record.age_minutes}m soft={policy.soft_minutes}m hard={policy.hard_minutes}m"
        kind = record.kind.value

        if decision.action is Action.PRESERVE:
            self.summary.preserved += 1
            if decision.reason == "within limits":
                log.debug("%s %s (%s): %s -> within limits", kind, record.name, record.namespace, limits)
            else:
                log.info("Keeping %s %s (%s) -> %s (%s)", kind, record.name, record.namespace, decision.reason, limits)
            return

        if decision.action is Action.ENQUEUE:
            self.scheduler.enqueue(record.namespace, record.name)
            self.summary.queued += 1
            log.info("Pod %s (%s) queued for deletion -> %s (%s)", record.name, record.namespace, decision.reason, limits)
            return

        log.info("Deleting %s %s (%s) -> %s (%s)", kind, record.name, record.namespace, decision.reason, limits)
        if self._dry_run:
            log.info("[DRY RUN] Would delete %s %s (%s)", kind, record.name, record.namespace)
            self.summary.deleted += 1
            return

        ok, output = self._kc.delete_resource(kind, record.name, record.namespace)
        if ok:
            self.summary.deleted += 1
            log.info("Successfully deleted %s %s (%s)", kind, record.name, record.namespace)
        else:
            self.summary.failed += 1
            log.error("Failed to delete %s %s (%s) [%s]: %s", kind, record.name, record.namespace, limits, output)
