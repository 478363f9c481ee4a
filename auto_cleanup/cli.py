# auto-cleanup — CLI tool
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# One invocation performs one full run and exits, which makes it safe to
# schedule from cron: overlapping runs are refused by the execution lock.

from __future__ import annotations

import argparse
import logging
import signal
import sys

from . import VERSION
from .cleaner import Cleaner, RunSummary
from .config import ConfigError, load_config
from .exclusions import exclusion_paths, load_exclusions
from .kubectl import Kubectl
from .lock import ExecutionLock, LockHeldError
from .logging_utils import setup_logging
from .policy import PolicyResolver

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _exit_on_signal(signum, frame):
    # Unwinds through the lock's context manager.
    raise SystemExit(128 + signum)


def install_signal_handlers():
    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _exit_on_signal)


def print_summary(summary: RunSummary, dry_run: bool):
    print()
    print("=== Summary ===" + (" [DRY RUN]" if dry_run else ""))
    print(f"Evaluated: {summary.evaluated}")
    print(f"Deleted:   {summary.deleted}")
    print(f"Preserved: {summary.preserved}")
    print(f"Failed:    {summary.failed}")
    print(f"Pods queued: {summary.queued} (deleted {summary.pods_deleted}, failed {summary.pods_failed})")
    print(f"Pod batches: {summary.pod_batches} (failed {summary.pod_batches_failed})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auto-cleanup",
        description="Delete Deployments, standalone Pods and Services that outlived their tenant's retention policy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  auto-cleanup                          Run once with the discovered config\n"
            "  auto-cleanup --dry-run                Show what would be deleted\n"
            "  auto-cleanup -q --config ./my.conf    Quiet run (for cron)\n"
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        metavar="<path>",
        help="Config file (default: $AUTO_CLEANUP_CONFIG, /etc/auto-cleanup/auto-cleanup.conf, ./conf)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate and log every decision without deleting anything",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only echo warnings and errors; the log file keeps full detail",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"auto-cleanup {VERSION}",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    log_path = setup_logging(config.log_level, log_dir=config.log_dir, quiet=args.quiet)
    log.info("Loaded configuration from: %s", config.source)
    if log_path is not None:
        log.debug("Logging to %s", log_path)

    kc = Kubectl(timeout=config.kubectl_timeout)
    if not kc.available():
        log.error("Missing required dependency: kubectl")
        return EXIT_FAILURE

    install_signal_handlers()
    lock = ExecutionLock(config.lock_file)
    try:
        lock.acquire()
    except LockHeldError as e:
        log.error("%s", e)
        return EXIT_FAILURE
    except OSError as e:
        log.error("Cannot open lock file %s: %s", config.lock_file, e)
        return EXIT_FAILURE

    try:
        with lock:
            log.info("Auto Cleanup (Deployments, Pods and Services) started...")
            log.info("Config summary: %s", config.summary())
            exclusions = load_exclusions(exclusion_paths(config.exclusions_dir))
            resolver = PolicyResolver.from_config(config)
            cleaner = Cleaner(kc, config, resolver, exclusions, dry_run=args.dry_run)
            summary = cleaner.run()
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return EXIT_FAILURE

    log.info("Auto Cleanup (Deployments, Pods and Services) finished")
    if not args.quiet:
        print_summary(summary, args.dry_run)
    return EXIT_OK


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
