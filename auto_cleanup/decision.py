# auto-cleanup — per-resource retention decision
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# Order matters: exclusion, then hard limit, then soft limit. The hard limit
# never looks at the keep-alive label; the soft limit only reads it once the
# age has crossed the threshold.

from __future__ import annotations

import logging
from typing import Callable

from .exclusions import ExclusionSet
from .models import Action, Decision, KindPolicy, ResourceKind, ResourceRecord, RetentionPolicy

log = logging.getLogger(__name__)

LabelFetcher = Callable[[ResourceRecord], "str | None"]


def _delete_action(kind: ResourceKind) -> Action:
    return Action.ENQUEUE if kind is ResourceKind.POD else Action.DELETE_NOW


def _read_keep_alive(record: ResourceRecord, fetch_label: LabelFetcher) -> str:
    try:
        value = fetch_label(record)
    except Exception as e:
        log.debug("keep-alive lookup failed for %s %s (%s): %s", record.kind.value, record.name, record.namespace, e)
        return ""
    return value or ""


def decide(
    record: ResourceRecord,
    policy: RetentionPolicy,
    kind_policy: KindPolicy,
    exclusions: ExclusionSet,
    fetch_label: LabelFetcher,
) -> Decision:
    """Decide what happens to one resource. Never raises."""
    if exclusions.is_excluded(record.kind, record.name, record.namespace):
        return Decision(Action.PRESERVE, "excluded")

    age = record.age_minutes

    if kind_policy.hard_enabled and age >= policy.hard_minutes:
        return Decision(_delete_action(record.kind), "hard limit")

    if kind_policy.soft_enabled and age >= policy.soft_minutes:
        raw = _read_keep_alive(record, fetch_label)
        if raw.strip().lower() == "true":
            return Decision(Action.PRESERVE, "protected")
        if not raw:
            return Decision(_delete_action(record.kind), "soft, no label")
        return Decision(_delete_action(record.kind), f"soft, keep-alive='{raw}'")

    return Decision(Action.PRESERVE, "within limits")
