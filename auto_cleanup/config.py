# auto-cleanup — configuration loading
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# Reads the shell-style KEY=value file (auto-cleanup.conf) and turns its
# loosely-typed strings into frozen settings. Booleans and integers are
# normalised here and nowhere else.

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

from .models import KindPolicy, PodDeleteSettings, ResourceKind, TenantClass

CONFIG_ENV_VAR = "AUTO_CLEANUP_CONFIG"
SYSTEM_CONFIG = Path("/etc/auto-cleanup/auto-cleanup.conf")
REPO_CONFIG = Path(__file__).resolve().parents[1] / "conf" / "auto-cleanup.conf"

DEFAULT_LOCK_FILE = Path("/var/run/auto-cleanup.lock")
DEFAULT_NAMESPACE_PATTERN = "^dgx-"
DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_KUBECTL_TIMEOUT = 30
DEFAULT_DRAIN_TIMEOUT = 600

DEFAULT_PREFIXES = {
    TenantClass.STUDENT: "dgx-s",
    TenantClass.FACULTY: "dgx-f",
    TenantClass.INDUSTRY: "dgx-i",
}

_KIND_KEYS = {
    ResourceKind.DEPLOYMENT: "Deployment",
    ResourceKind.POD: "Pod",
    ResourceKind.SERVICE: "Service",
}

_TRUTHY = {"true", "t", "yes", "y", "1"}

_DURATION_RE = re.compile(r"^(\d+)([mhd]?)$", re.IGNORECASE)
_UNIT_MINUTES = {"": 1, "m": 1, "h": 60, "d": 1440}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class ConfigError(Exception):
    """Configuration is missing or unusable; the run must not start."""


# ======================================================================
# Value parsers
# ======================================================================

def parse_bool(value: str | None) -> bool:
    """true/t/yes/y/1 (any case, surrounding blanks ignored) are True."""
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def parse_minutes(value: str | None) -> int:
    """Parse a duration such as 90, 30M, 2h or 7D into minutes.

    Raises ValueError for empty or malformed input.
    """
    text = (value or "").strip()
    m = _DURATION_RE.match(text)
    if not m:
        raise ValueError(f"invalid duration '{value}'")
    return int(m.group(1)) * _UNIT_MINUTES[m.group(2).lower()]


def _positive_int(value: str | None, default: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


# ======================================================================
# Settings
# ======================================================================

@dataclass(frozen=True)
class CleanupConfig:
    source: Path
    kinds: dict[ResourceKind, KindPolicy]
    thresholds: dict[TenantClass, tuple[str | None, str | None]]
    tenant_prefixes: tuple[tuple[TenantClass, str], ...] = tuple(DEFAULT_PREFIXES.items())
    namespace_pattern: str = DEFAULT_NAMESPACE_PATTERN
    pod: PodDeleteSettings = field(default_factory=PodDeleteSettings)
    kubectl_timeout: int = DEFAULT_KUBECTL_TIMEOUT
    exclusions_dir: Path = Path(".")
    lock_file: Path = DEFAULT_LOCK_FILE
    log_level: str = "INFO"
    log_dir: Path | None = None

    def kind_policy(self, kind: ResourceKind) -> KindPolicy:
        return self.kinds.get(kind, KindPolicy())

    def summary(self) -> str:
        parts = []
        for kind in ResourceKind:
            kp = self.kind_policy(kind)
            parts.append(
                f"{kind.value}: enabled={kp.active} hard={kp.hard_enabled} soft={kp.soft_enabled}"
            )
        pod = self.pod
        parts.append(
            f"pod batch={pod.batch_size} force={pod.force} background={pod.background} "
            f"concurrency={pod.max_concurrency}"
        )
        return "; ".join(parts)


def find_config(explicit: str | os.PathLike | None = None) -> Path | None:
    """Locate the config file: explicit path, $AUTO_CLEANUP_CONFIG, /etc, repo conf/."""
    if explicit:
        return Path(explicit)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    for candidate in (SYSTEM_CONFIG, REPO_CONFIG):
        if candidate.is_file():
            return candidate
    return None


def load_config(path: str | os.PathLike | None = None) -> CleanupConfig:
    config_path = find_config(path)
    if config_path is None:
        raise ConfigError("Configuration file not found in standard locations")
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    raw = dotenv_values(config_path)
    values = {k: v for k, v in raw.items() if v is not None}
    return build_config(values, source=config_path)


def build_config(values: dict[str, str], source: Path = Path(".")) -> CleanupConfig:
    """Turn raw KEY=value strings into a CleanupConfig."""
    kinds = {}
    for kind, key in _KIND_KEYS.items():
        kp = KindPolicy(
            enabled=parse_bool(values.get(key)),
            hard_enabled=parse_bool(values.get(f"{key}_HardLimit")),
            soft_enabled=parse_bool(values.get(f"{key}_SoftLimit")),
        )
        kinds[kind] = kp

    thresholds = {}
    prefixes = []
    for tenant in TenantClass:
        upper = tenant.value.upper()
        thresholds[tenant] = (values.get(f"{upper}_SOFT"), values.get(f"{upper}_HARD"))
        prefix = (values.get(f"{upper}_PREFIX") or "").strip() or DEFAULT_PREFIXES[tenant]
        prefixes.append((tenant, prefix))

    namespace_pattern = (values.get("NAMESPACE_PATTERN") or "").strip() or DEFAULT_NAMESPACE_PATTERN
    try:
        re.compile(namespace_pattern)
    except re.error as e:
        raise ConfigError(f"Invalid NAMESPACE_PATTERN '{namespace_pattern}': {e}") from e

    pod = PodDeleteSettings(
        batch_size=_positive_int(values.get("POD_BATCH_SIZE"), DEFAULT_BATCH_SIZE),
        force=parse_bool(values.get("POD_FORCE_DELETE", "false")),
        background=parse_bool(values.get("POD_BACKGROUND_DELETE", "true")),
        max_concurrency=_positive_int(values.get("POD_MAX_CONCURRENCY"), DEFAULT_MAX_CONCURRENCY),
        drain_timeout=_positive_int(values.get("DRAIN_TIMEOUT"), DEFAULT_DRAIN_TIMEOUT),
    )

    exclusions_dir = values.get("EXCLUSIONS_DIR", "").strip()
    log_dir = values.get("LOG_DIR", "").strip()
    log_level = values.get("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        log_level = "INFO"

    return CleanupConfig(
        source=source,
        kinds=kinds,
        thresholds=thresholds,
        tenant_prefixes=tuple(prefixes),
        namespace_pattern=namespace_pattern,
        pod=pod,
        kubectl_timeout=_positive_int(values.get("KUBECTL_TIMEOUT"), DEFAULT_KUBECTL_TIMEOUT),
        exclusions_dir=Path(exclusions_dir) if exclusions_dir else source.parent,
        lock_file=Path(values.get("LOCK_FILE", "").strip() or DEFAULT_LOCK_FILE),
        log_level=log_level,
        log_dir=Path(log_dir) if log_dir else None,
    )
