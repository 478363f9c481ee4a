# auto-cleanup — thin kubectl subprocess wrapper
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass
class ClusterResource:
    namespace: str
    name: str
    creation_timestamp: str = ""
    owner_references: list = field(default_factory=list)


class Kubectl:
    """Thin wrapper around kubectl. All methods return safe defaults on failure."""

    def __init__(self, timeout: int = 30, binary: str = "kubectl"):
        self._timeout = timeout
        self._binary = binary

    def available(self) -> bool:
        return shutil.which(self._binary) is not None

    def run(self, args: list[str], timeout: int | None = None) -> tuple[int, str, str]:
        """Run kubectl with args. Returns (returncode, stdout, stderr)."""
        timeout = timeout if timeout is not None else self._timeout
        try:
            proc = subprocess.run(
                [self._binary] + args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            return proc.returncode, proc.stdout, proc.stderr
        except subprocess.TimeoutExpired:
            return 1, "", f"timeout after {timeout}s"
        except FileNotFoundError:
            return 1, "", f"{self._binary} not found"

    def get_json(self, args: list[str], timeout: int | None = None) -> dict | list | None:
        """Run kubectl with -o json and parse output. Returns None on failure."""
        rc, out, err = self.run(args + ["-o", "json"], timeout=timeout)
        if rc != 0 or not out.strip():
            if err.strip():
                log.debug("kubectl %s failed: %s", " ".join(args), err.strip())
            return None
        try:
            return json.loads(out)
        except json.JSONDecodeError:
            return None

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def list_resources(self, kind: str, namespace_pattern: str) -> list[ClusterResource]:
        """List <kind> across all namespaces whose name matches the regex."""
        data = self.get_json(["get", kind, "-A"])
        if not isinstance(data, dict):
            log.warning("Could not list %s resources", kind)
            return []

        pattern = re.compile(namespace_pattern)
        resources = []
        for item in data.get("items", []):
            meta = item.get("metadata") or {}
            ns = meta.get("namespace", "")
            name = meta.get("name", "")
            if not ns or not name or not pattern.search(ns):
                continue
            resources.append(
                ClusterResource(
                    namespace=ns,
                    name=name,
                    creation_timestamp=meta.get("creationTimestamp", "") or "",
                    owner_references=list(meta.get("ownerReferences") or []),
                )
            )
        return resources

    def list_namespaces(self, namespace_pattern: str) -> list[str] | None:
        """Namespace names matching the regex. None when the listing failed."""
        data = self.get_json(["get", "namespaces"])
        if not isinstance(data, dict):
            log.warning("Could not list namespaces")
            return None
        pattern = re.compile(namespace_pattern)
        names = []
        for item in data.get("items", []):
            name = (item.get("metadata") or {}).get("name", "")
            if name and pattern.search(name):
                names.append(name)
        return names

    def get_label(self, kind: str, name: str, namespace: str, key: str) -> str | None:
        """Read a single label from a live resource. None when absent or unreadable."""
        data = self.get_json(["get", kind, name, "-n", namespace])
        if not isinstance(data, dict):
            return None
        labels = (data.get("metadata") or {}).get("labels") or {}
        value = labels.get(key)
        return None if value is None else str(value)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def delete_resource(self, kind: str, name: str, namespace: str, force: bool = False) -> tuple[bool, str]:
        """kubectl delete <kind> <name> -n <ns>. Returns (success, output)."""
        args = ["delete", kind, name, "-n", namespace]
        if force:
            args += ["--grace-period=0", "--force"]
        rc, out, err = self.run(args)
        return rc == 0, (out + err).strip()

    def delete_pods(
        self, names: list[str], namespace: str, force: bool = False, wait: bool = True
    ) -> tuple[bool, str]:
        """Delete several pods of one namespace in a single call."""
        args = ["delete", "pod"] + list(names) + ["-n", namespace]
        if force:
            args += ["--grace-period=0", "--force"]
        if not wait:
            args.append("--wait=false")
        rc, out, err = self.run(args)
        return rc == 0, (out + err).strip()
