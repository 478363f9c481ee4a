# auto-cleanup — batched pod deletion
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# Pods are queued during the scan and deleted afterwards, grouped by
# namespace so one kubectl call removes up to batch_size pods. Calls go
# through a small thread pool. In background mode flush() only submits the
# batches (kubectl runs with --wait=false) and join() collects them at the end
# of the run; in synchronous mode flush() waits, running each namespace's
# batches in order.

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable

from .models import PodDeleteSettings

log = logging.getLogger(__name__)

# (pod names, namespace, force, wait) -> (success, output)
PodDeleter = Callable[[list[str], str, bool, bool], "tuple[bool, str]"]

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class PodBatch:
    namespace: str
    pods: tuple[str, ...]


@dataclass(frozen=True)
class FlushResult:
    pods: int = 0
    batches: int = 0


def plan_batches(entries: Iterable, batch_size: int) -> list[PodBatch]:
    """Group (namespace, pod) entries by namespace and cut them into batches.

    Namespaces keep their first-seen order and pods keep queue order. Entries
    without a namespace or pod name are dropped.
    """
    if batch_size <= 0:
        batch_size = DEFAULT_BATCH_SIZE

    grouped: dict[str, list[str]] = {}
    for entry in entries:
        try:
            ns, pod = entry
        except (TypeError, ValueError):
            continue
        if not ns or not pod:
            continue
        grouped.setdefault(ns, []).append(pod)

    batches = []
    for ns, pods in grouped.items():
        for start in range(0, len(pods), batch_size):
            batches.append(PodBatch(ns, tuple(pods[start:start + batch_size])))
    return batches


class PodBatchScheduler:
    def __init__(self, deleter: PodDeleter, settings: PodDeleteSettings | None = None):
        self._deleter = deleter
        self.settings = settings or PodDeleteSettings()
        self._queue: list[tuple[str, str]] = []
        self._executor: ThreadPoolExecutor | None = None
        self._pending: dict[Future, list[PodBatch]] = {}
        self._lock = threading.Lock()
        self.deleted = 0
        self.failed = 0
        self.failed_batches = 0

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, namespace: str, pod: str):
        self._queue.append((namespace, pod))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, self.settings.max_concurrency),
                thread_name_prefix="pod-delete",
            )
        return self._executor

    def _delete_batch(self, batch: PodBatch, wait_for_removal: bool) -> bool:
        log.info(
            "Deleting pods in batch (namespace=%s): %s (force=%s background=%s)",
            batch.namespace,
            " ".join(batch.pods),
            self.settings.force,
            self.settings.background,
        )
        try:
            ok, output = self._deleter(list(batch.pods), batch.namespace, self.settings.force, wait_for_removal)
        except Exception as e:
            ok, output = False, str(e)

        with self._lock:
            if ok:
                self.deleted += len(batch.pods)
            else:
                self.failed += len(batch.pods)
                self.failed_batches += 1

        if not ok:
            log.error(
                "kubectl delete returned non-zero for pods (%s) in ns=%s: %s",
                " ".join(batch.pods),
                batch.namespace,
                output,
            )
        return ok

    def _delete_namespace(self, batches: list[PodBatch]):
        for batch in batches:
            self._delete_batch(batch, True)

    def flush(self) -> FlushResult:
        """Dispatch every queued pod. The queue is empty afterwards, whatever happened."""
        log.info("Flushing Pod deletion queue (%d pods)...", len(self._queue))
        try:
            batches = plan_batches(self._queue, self.settings.batch_size)
            if not batches:
                log.info("No pods queued for deletion")
                return FlushResult()

            pool = self._pool()
            if self.settings.background:
                for batch in batches:
                    self._pending[pool.submit(self._delete_batch, batch, False)] = [batch]
            else:
                by_namespace: dict[str, list[PodBatch]] = {}
                for batch in batches:
                    by_namespace.setdefault(batch.namespace, []).append(batch)
                futures = {pool.submit(self._delete_namespace, group): group for group in by_namespace.values()}
                self._wait(futures, self.settings.drain_timeout)

            return FlushResult(pods=sum(len(b.pods) for b in batches), batches=len(batches))
        finally:
            self._queue.clear()
            log.info("Pod deletion queue flushed")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for background batches, at most timeout seconds (default drain_timeout).

        Returns False when some batches were still running at the deadline.
        """
        pending, self._pending = self._pending, {}
        if timeout is None:
            timeout = self.settings.drain_timeout
        finished = self._wait(pending, timeout)
        self.shutdown()
        return finished

    def _wait(self, futures: dict[Future, list[PodBatch]], timeout: float) -> bool:
        """Wait for futures; cancel whatever has not started once timeout passes."""
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        if not not_done:
            return True

        log.error(
            "%d pod deletion task(s) still running after %ss, no longer waiting",
            len(not_done),
            timeout,
        )
        for future in not_done:
            batches = futures[future]
            if future.cancel():
                with self._lock:
                    self.failed += sum(len(b.pods) for b in batches)
                    self.failed_batches += len(batches)
                for batch in batches:
                    log.error(
                        "Pod deletion cancelled after drain timeout: pods (%s) in ns=%s",
                        " ".join(batch.pods),
                        batch.namespace,
                    )
            else:
                log.error(
                    "Pod deletion still in progress in ns=%s: pods (%s)",
                    batches[0].namespace,
                    " ".join(p for b in batches for p in b.pods),
                )
        return False

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
