# auto-cleanup — namespace to tenant policy resolution
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.

from __future__ import annotations

from .config import CleanupConfig, ConfigError, parse_minutes
from .models import RetentionPolicy, TenantClass


class PolicyResolver:
    """Maps a namespace to its tenant class and soft/hard limits in minutes.

    Thresholds are parsed up front. A tenant class whose thresholds are
    missing or malformed is remembered as broken and only becomes an error
    when a namespace actually resolves to it.
    """

    def __init__(
        self,
        prefixes: tuple[tuple[TenantClass, str], ...] | list[tuple[TenantClass, str]],
        thresholds: dict[TenantClass, tuple[str | None, str | None]],
    ):
        self._prefixes = tuple(prefixes)
        self._policies: dict[TenantClass, RetentionPolicy] = {}
        self._errors: dict[TenantClass, str] = {}

        for tenant, _ in self._prefixes:
            soft_raw, hard_raw = thresholds.get(tenant, (None, None))
            upper = tenant.value.upper()
            try:
                soft = parse_minutes(soft_raw)
                hard = parse_minutes(hard_raw)
            except ValueError:
                self._errors[tenant] = (
                    f"{tenant.value} limits missing or invalid: "
                    f"{upper}_SOFT={soft_raw!r} {upper}_HARD={hard_raw!r}"
                )
                continue
            self._policies[tenant] = RetentionPolicy(tenant, soft, hard)

    @classmethod
    def from_config(cls, config: CleanupConfig) -> "PolicyResolver":
        return cls(config.tenant_prefixes, config.thresholds)

    @property
    def broken(self) -> list[str]:
        """Error messages for tenant classes without usable limits."""
        return list(self._errors.values())

    def tenant_for(self, namespace: str) -> TenantClass | None:
        for tenant, prefix in self._prefixes:
            if namespace.startswith(prefix):
                return tenant
        return None

    def resolve(self, namespace: str) -> RetentionPolicy | None:
        """Return the namespace's policy, or None when no tenant prefix matches.

        Raises ConfigError when the matched tenant class has no usable limits.
        """
        tenant = self.tenant_for(namespace)
        if tenant is None:
            return None
        if tenant in self._errors:
            raise ConfigError(f"namespace {namespace}: {self._errors[tenant]}")
        return self._policies[tenant]

    def validate(self, namespaces: list[str]) -> None:
        """Resolve every namespace once so a broken tenant class fails the run early."""
        for ns in namespaces:
            self.resolve(ns)
