import logging
from datetime import datetime, timedelta, timezone

import pytest

from auto_cleanup.cleaner import Cleaner, compute_age_minutes
from auto_cleanup.config import ConfigError
from auto_cleanup.exclusions import ExclusionSet
from auto_cleanup.policy import PolicyResolver
from tests.helpers import FakeKubectl, make_config, resource

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def created(minutes_ago):
    return (NOW - timedelta(minutes=minutes_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_cleaner(kc, cfg, exclusions=None, dry_run=False):
    return Cleaner(
        kc,
        cfg,
        PolicyResolver.from_config(cfg),
        exclusions or ExclusionSet(),
        dry_run=dry_run,
        now_epoch=NOW.timestamp(),
    )


def mutations(kc):
    return [c for c in kc.calls if c[0] in ("delete", "delete-pods")]


# ----------------------------------------------------------------------
# Age
# ----------------------------------------------------------------------

def test_compute_age_floors_to_whole_minutes():
    now = NOW.timestamp()
    assert compute_age_minutes(created(90), now) == 90
    assert compute_age_minutes(created(90), now + 59) == 90
    assert compute_age_minutes(created(90), now + 60) == 91


def test_compute_age_accepts_offsets():
    assert compute_age_minutes("2026-03-01T13:00:00+01:00", NOW.timestamp() + 600) == 10


@pytest.mark.parametrize("ts", ["", "yesterday", "2026-13-01T00:00:00Z"])
def test_unreadable_timestamp_is_age_zero(ts):
    assert compute_age_minutes(ts, NOW.timestamp()) == 0


def test_future_timestamp_is_age_zero():
    assert compute_age_minutes(created(-30), NOW.timestamp()) == 0


# ----------------------------------------------------------------------
# Run orchestration
# ----------------------------------------------------------------------

def test_run_order_deployments_pods_services(config):
    kc = FakeKubectl(
        resources={
            "deployment": [resource("tenant-s-a", "web", created(200))],
            "pod": [resource("tenant-s-a", "scratch", created(200))],
            "service": [resource("tenant-s-a", "web-svc", created(200))],
        }
    )
    summary = make_cleaner(kc, config).run()

    assert kc.calls == [
        ("list", "deployment"),
        ("delete", "deployment", "tenant-s-a", "web"),
        ("list", "pod"),
        ("delete-pods", "tenant-s-a", ("scratch",), False, True),
        ("list", "service"),
        ("delete", "service", "tenant-s-a", "web-svc"),
    ]
    assert summary.evaluated == 3
    assert summary.deleted == 2
    assert summary.queued == 1
    assert summary.pods_deleted == 1


def test_owned_pods_are_never_candidates(config):
    kc = FakeKubectl(
        resources={
            "pod": [
                resource("tenant-s-a", "web-7d9f-abcde", created(500), owners=[{"kind": "ReplicaSet"}]),
                resource("tenant-s-a", "notebook", created(500)),
            ]
        }
    )
    summary = make_cleaner(kc, config).run()

    assert ("delete-pods", "tenant-s-a", ("notebook",), False, True) in kc.calls
    assert all("web-7d9f-abcde" not in str(c) for c in mutations(kc))
    assert summary.evaluated == 1


def test_excluded_pod_skips_label_lookup(config):
    kc = FakeKubectl(resources={"pod": [resource("tenant-s-a", "keepme", created(90))]})
    excl = ExclusionSet(pods=frozenset({"keepme"}))

    summary = make_cleaner(kc, config, excl).run()

    assert not any(c[0] == "label" for c in kc.calls)
    assert mutations(kc) == []
    assert summary.evaluated == 0


def test_unmatched_namespaces_are_skipped(config):
    kc = FakeKubectl(
        resources={
            "deployment": [
                resource("tenant-x-ops", "tool", created(99999)),
                resource("kube-system", "coredns", created(99999)),
            ]
        }
    )
    summary = make_cleaner(kc, config).run()
    assert mutations(kc) == []
    assert summary.evaluated == 0


def test_keep_alive_label_protects_past_soft_limit(config):
    kc = FakeKubectl(
        resources={"deployment": [resource("tenant-s-a", "web", created(90)), resource("tenant-s-a", "api", created(90))]},
        labels={("deployment", "tenant-s-a", "web"): "True"},
    )
    summary = make_cleaner(kc, config).run()

    assert mutations(kc) == [("delete", "deployment", "tenant-s-a", "api")]
    assert summary.preserved == 1
    assert summary.deleted == 1


def test_young_resources_need_no_label_lookup(config):
    kc = FakeKubectl(resources={"service": [resource("tenant-f-lab", "svc", created(30))]})
    summary = make_cleaner(kc, config).run()
    assert not any(c[0] == "label" for c in kc.calls)
    assert summary.preserved == 1


def test_disabled_kind_issues_no_queries(tmp_path, caplog):
    cfg = make_config(tmp_path, Pod="False", Service_HardLimit="False", Service_SoftLimit="False")
    kc = FakeKubectl(resources={"deployment": [resource("tenant-s-a", "web", created(10))]})

    with caplog.at_level(logging.INFO):
        make_cleaner(kc, cfg).run()

    listed = [c[1] for c in kc.calls if c[0] == "list"]
    assert listed == ["deployment"]
    assert "Pod checks disabled by config" in caplog.text
    assert "Service hard & soft both disabled" in caplog.text


def test_nothing_enabled_skips_preflight(tmp_path):
    cfg = make_config(tmp_path, Deployment="False", Pod="False", Service="False")
    kc = FakeKubectl()
    make_cleaner(kc, cfg).run()
    assert kc.calls == []


def test_broken_tenant_class_aborts_before_any_deletion(tmp_path):
    cfg = make_config(tmp_path, FACULTY_HARD=None)
    kc = FakeKubectl(
        resources={
            "deployment": [resource("tenant-s-a", "web", created(500))],
            "service": [resource("tenant-f-lab", "svc", created(5000))],
        }
    )

    with pytest.raises(ConfigError, match="tenant-f-lab"):
        make_cleaner(kc, cfg).run()
    assert mutations(kc) == []


def test_unlistable_namespaces_with_broken_class_abort_before_deletion(tmp_path):
    cfg = make_config(tmp_path, FACULTY_HARD=None)
    kc = FakeKubectl(
        resources={
            "deployment": [
                resource("tenant-s-a", "web", created(500)),
                resource("tenant-f-lab", "x", created(500)),
            ]
        },
        namespaces_fail=True,
    )

    with pytest.raises(ConfigError, match="cannot list namespaces"):
        make_cleaner(kc, cfg).run()
    assert mutations(kc) == []
    assert ("list", "deployment") not in kc.calls


def test_valid_limits_need_no_namespace_listing(config):
    kc = FakeKubectl(
        resources={"deployment": [resource("tenant-s-a", "web", created(500))]},
        namespaces_fail=True,
    )
    summary = make_cleaner(kc, config).run()

    assert ("namespaces",) not in kc.calls
    assert summary.deleted == 1


def test_failed_delete_is_counted(config, caplog):
    kc = FakeKubectl(
        resources={"deployment": [resource("tenant-s-a", "web", created(500))]},
        fail_deletes={("deployment", "tenant-s-a", "web")},
    )
    with caplog.at_level(logging.ERROR):
        summary = make_cleaner(kc, config).run()

    assert summary.failed == 1
    assert summary.deleted == 0
    assert "Failed to delete deployment web (tenant-s-a)" in caplog.text


def test_dry_run_deletes_nothing(config, caplog):
    kc = FakeKubectl(
        resources={
            "deployment": [resource("tenant-s-a", "web", created(500))],
            "pod": [resource("tenant-s-a", "scratch", created(500))],
        }
    )
    with caplog.at_level(logging.INFO):
        summary = make_cleaner(kc, config, dry_run=True).run()

    assert mutations(kc) == []
    assert summary.deleted == 1
    assert summary.pods_deleted == 1
    assert "[DRY RUN] Would delete deployment web (tenant-s-a)" in caplog.text
    assert "[DRY RUN] Would delete pods (scratch) in ns=tenant-s-a" in caplog.text


def test_pods_batched_per_namespace(tmp_path):
    cfg = make_config(tmp_path, POD_BATCH_SIZE="2")
    pods = [resource("tenant-s-a", f"a{i}", created(500)) for i in range(3)]
    pods += [resource("tenant-i-b", f"b{i}", created(5000)) for i in range(2)]
    kc = FakeKubectl(resources={"pod": pods})

    summary = make_cleaner(kc, cfg).run()

    batches = sorted((c[1], c[2]) for c in kc.calls if c[0] == "delete-pods")
    assert batches == [
        ("tenant-i-b", ("b0", "b1")),
        ("tenant-s-a", ("a0", "a1")),
        ("tenant-s-a", ("a2",)),
    ]
    assert summary.queued == 5
    assert summary.pod_batches == 3
    assert summary.pod_batches_failed == 0
    assert summary.pods_deleted == 5
