from __future__ import annotations

import re
from pathlib import Path

from auto_cleanup.config import build_config
from auto_cleanup.kubectl import ClusterResource

BASE_VALUES = {
    "Deployment": "True",
    "Deployment_HardLimit": "True",
    "Deployment_SoftLimit": "True",
    "Pod": "True",
    "Pod_HardLimit": "True",
    "Pod_SoftLimit": "True",
    "Service": "True",
    "Service_HardLimit": "True",
    "Service_SoftLimit": "True",
    "STUDENT_PREFIX": "tenant-s",
    "STUDENT_SOFT": "60",
    "STUDENT_HARD": "120",
    "FACULTY_PREFIX": "tenant-f",
    "FACULTY_SOFT": "2H",
    "FACULTY_HARD": "1D",
    "INDUSTRY_PREFIX": "tenant-i",
    "INDUSTRY_SOFT": "1D",
    "INDUSTRY_HARD": "2D",
    "NAMESPACE_PATTERN": "^tenant-",
    "POD_BATCH_SIZE": "50",
    "POD_BACKGROUND_DELETE": "False",
}


def make_config(tmp_path=None, **overrides):
    values = dict(BASE_VALUES)
    for key, value in overrides.items():
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value
    if tmp_path is not None:
        values.setdefault("LOCK_FILE", str(tmp_path / "auto-cleanup.lock"))
        source = tmp_path / "auto-cleanup.conf"
    else:
        source = Path("auto-cleanup.conf")
    return build_config(values, source=source)


class FakeKubectl:
    """In-memory stand-in for Kubectl that records every call."""

    def __init__(self, resources=None, labels=None, namespaces=None, fail_deletes=(), namespaces_fail=False):
        # kind -> list[ClusterResource]
        self.resources = resources or {}
        # (kind, ns, name) -> label value
        self.labels = labels or {}
        self.namespaces = namespaces
        self.fail_deletes = set(fail_deletes)
        self.namespaces_fail = namespaces_fail
        self.calls = []

    def available(self):
        return True

    def list_resources(self, kind, namespace_pattern):
        self.calls.append(("list", kind))
        pattern = re.compile(namespace_pattern)
        return [r for r in self.resources.get(kind, []) if pattern.search(r.namespace)]

    def list_namespaces(self, namespace_pattern):
        self.calls.append(("namespaces",))
        if self.namespaces_fail:
            return None
        if self.namespaces is not None:
            names = self.namespaces
        else:
            names = sorted({r.namespace for items in self.resources.values() for r in items})
        pattern = re.compile(namespace_pattern)
        return [n for n in names if pattern.search(n)]

    def get_label(self, kind, name, namespace, key):
        self.calls.append(("label", kind, namespace, name))
        return self.labels.get((kind, namespace, name))

    def delete_resource(self, kind, name, namespace, force=False):
        self.calls.append(("delete", kind, namespace, name))
        if (kind, namespace, name) in self.fail_deletes:
            return False, "error: forbidden"
        return True, f"{kind} \"{name}\" deleted"

    def delete_pods(self, names, namespace, force=False, wait=True):
        self.calls.append(("delete-pods", namespace, tuple(names), force, wait))
        return True, "deleted"


def resource(ns, name, created="2026-01-01T00:00:00Z", owners=None):
    return ClusterResource(namespace=ns, name=name, creation_timestamp=created, owner_references=owners or [])

