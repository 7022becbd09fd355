from __future__ import annotations

import pytest

from kafka_provisioner.core.config import Settings
from kafka_provisioner.core.exceptions import IncompatibleChange, ObservationFailure
from kafka_provisioner.domain.models import (
    Acl,
    ActionResult,
    ResourceKind,
    Schema,
    State,
    Topic,
)
from kafka_provisioner.domain.services.reconciler import Reconciler

NS = "a.b"


def topic(name: str, partitions: int = 3) -> Topic:
    return Topic(name=name, partitions=partitions, replication_factor=1)


def read_acl(topic_name: str, principal: str = "User:*") -> Acl:
    return Acl(principal=principal, resource_name=topic_name, operation="READ")


@pytest.fixture
def reconciler_for(settings: Settings):
    def make(client, namespace: str = NS) -> Reconciler:
        return Reconciler(client, namespace=namespace, settings=settings)

    return make


def test_empty_namespace_is_rejected(cluster, settings) -> None:
    with pytest.raises(ValueError):
        Reconciler(cluster, namespace="", settings=settings)


def test_second_run_is_empty(cluster, reconciler_for) -> None:
    desired = {
        ResourceKind.SCHEMA: [Schema(subject="a.b.c-value", schema_str='{"type":"string"}')],
        ResourceKind.TOPIC: [topic("a.b.c"), topic("a.b.d", partitions=6)],
        ResourceKind.ACL: [read_acl("a.b.c")],
    }
    reconciler = reconciler_for(cluster)

    first = reconciler.reconcile(desired)
    second = reconciler.reconcile(desired)

    assert first.success
    assert len(first.changeset) == 4
    assert second.changeset == []
    assert second.success
    assert {o.result for o in second.outcomes} == {ActionResult.NOOP}
    assert all(o.state is State.IGNORE for o in second.outcomes)


def test_drift_is_applied_then_converges(cluster_factory, reconciler_for) -> None:
    client = cluster_factory([topic("a.b.c", partitions=3)])
    reconciler = reconciler_for(client)

    first = reconciler.reconcile({ResourceKind.TOPIC: [topic("a.b.c", partitions=6)]})

    assert [(r.name, r.state) for r in first.changeset] == [("a.b.c", State.UPDATE)]
    assert first.outcome_for("topic", "a.b.c").result is ActionResult.APPLIED
    assert reconciler.reconcile({ResourceKind.TOPIC: [topic("a.b.c", partitions=6)]}).changeset == []


def test_unlisted_observed_resources_are_never_touched(cluster_factory, reconciler_for) -> None:
    orphan = topic("a.b.orphan")
    client = cluster_factory([orphan, read_acl("a.b.orphan")])

    outcome = reconciler_for(client).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.c")], ResourceKind.ACL: [read_acl("a.b.c")]}
    )

    assert orphan not in outcome.changeset
    assert read_acl("a.b.orphan") not in outcome.changeset
    assert ("topic", "a.b.orphan") not in client.applied
    assert orphan in client.existing[ResourceKind.TOPIC]


def test_dry_run_never_applies(cluster, reconciler_for) -> None:
    outcome = reconciler_for(cluster).reconcile({ResourceKind.TOPIC: [topic("a.b.c")]}, dry_run=True)

    assert outcome.dry_run
    assert [r.state for r in outcome.changeset] == [State.CREATE]
    assert cluster.events == []
    assert outcome.outcomes == []


def test_observation_is_scoped_to_namespace(cluster, reconciler_for) -> None:
    reconciler_for(cluster).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.c")], ResourceKind.ACL: [read_acl("a.b.c")]}
    )

    assert sorted(cluster.list_calls) == sorted([(ResourceKind.TOPIC, NS), (ResourceKind.ACL, NS)])


def test_observed_resources_outside_namespace_are_dropped(cluster_factory, reconciler_for) -> None:
    # A sloppy client returning another tenant's topic must not make ours look present.
    client = cluster_factory([topic("x.y.z")])

    outcome = reconciler_for(client).reconcile({ResourceKind.TOPIC: [topic("a.b.c")]})

    assert [r.name for r in outcome.changeset] == ["a.b.c"]


def test_desired_resource_outside_namespace_is_flagged(cluster, reconciler_for) -> None:
    outcome = reconciler_for(cluster).reconcile(
        {ResourceKind.TOPIC: [topic("x.y.z"), topic("a.b.c")]}
    )

    flagged = outcome.outcome_for("topic", "x.y.z")
    assert flagged.state is State.INCOMPATIBLE
    assert flagged.result is ActionResult.SKIPPED
    assert ("topic", "x.y.z") not in cluster.applied
    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.APPLIED


def test_sibling_prefix_tenant_is_outside_namespace(cluster_factory, reconciler_for) -> None:
    # "a.bc" shares the string prefix "a.b" but belongs to another domain.
    client = cluster_factory([topic("a.bc.theirs")])

    outcome = reconciler_for(client).reconcile(
        {ResourceKind.TOPIC: [topic("a.bc.other_tenant"), topic("a.bc.theirs"), topic("a.b.c")]}
    )

    for name in ("a.bc.other_tenant", "a.bc.theirs"):
        flagged = outcome.outcome_for("topic", name)
        assert flagged.state is State.INCOMPATIBLE
        assert flagged.result is ActionResult.SKIPPED
    assert client.applied == [("topic", "a.b.c")]


def test_topics_are_applied_before_their_acls(cluster, reconciler_for) -> None:
    reconciler_for(cluster).reconcile(
        {ResourceKind.ACL: [read_acl("a.b.c")], ResourceKind.TOPIC: [topic("a.b.c")]}
    )

    topic_end = cluster.events.index(("end", "topic", "a.b.c"))
    acl_start = cluster.events.index(("start", "acl", read_acl("a.b.c").describe()))
    assert topic_end < acl_start


def test_changeset_is_ordered_by_kind(cluster, reconciler_for) -> None:
    outcome = reconciler_for(cluster).reconcile(
        {
            ResourceKind.ACL: [read_acl("a.b.c")],
            ResourceKind.TOPIC: [topic("a.b.c")],
            ResourceKind.SCHEMA: [Schema(subject="a.b.c-value", schema_str="{}")],
        },
        dry_run=True,
    )

    assert [r.kind for r in outcome.changeset] == ["schema", "topic", "acl"]


def test_acl_failure_does_not_block_independent_topic(cluster, reconciler_for) -> None:
    acl_x = read_acl("a.b.x")
    cluster.existing[ResourceKind.TOPIC].append(topic("a.b.x"))
    cluster.fail(acl_x)

    outcome = reconciler_for(cluster).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.x"), topic("a.b.y")], ResourceKind.ACL: [acl_x]}
    )

    assert outcome.outcome_for("topic", "a.b.y").result is ActionResult.APPLIED
    failed = outcome.outcome_for("acl", acl_x.describe())
    assert failed.result is ActionResult.FAILED
    assert failed.reason == "rejected by broker"
    assert not outcome.success
    assert outcome.summary() == {"APPLIED": 1, "SKIPPED": 0, "FAILED": 1, "NOOP": 1}


def test_acl_on_failed_topic_is_skipped_not_failed(cluster, reconciler_for) -> None:
    cluster.fail(topic("a.b.c"))
    dependent = read_acl("a.b.c")
    independent = read_acl("a.b.d")

    outcome = reconciler_for(cluster).reconcile(
        {
            ResourceKind.TOPIC: [topic("a.b.c"), topic("a.b.d")],
            ResourceKind.ACL: [dependent, independent],
        }
    )

    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.FAILED
    skipped = outcome.outcome_for("acl", dependent.describe())
    assert skipped.result is ActionResult.SKIPPED
    assert "topic a.b.c" in skipped.reason
    assert ("acl", dependent.describe()) not in cluster.applied
    assert outcome.outcome_for("acl", independent.describe()).result is ActionResult.APPLIED


def test_failed_update_of_existing_topic_does_not_block_acl(cluster_factory, reconciler_for) -> None:
    client = cluster_factory([topic("a.b.c", partitions=3)])
    client.fail(topic("a.b.c"))

    outcome = reconciler_for(client).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.c", partitions=6)], ResourceKind.ACL: [read_acl("a.b.c")]}
    )

    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.FAILED
    assert outcome.outcome_for("acl", read_acl("a.b.c").describe()).result is ActionResult.APPLIED


def test_failed_schema_skips_its_topic(cluster, reconciler_for) -> None:
    schema = Schema(subject="a.b.c-value", schema_str="{}")
    cluster.fail(schema)

    outcome = reconciler_for(cluster).reconcile(
        {
            ResourceKind.SCHEMA: [schema],
            ResourceKind.TOPIC: [topic("a.b.c")],
            ResourceKind.ACL: [read_acl("a.b.c")],
        }
    )

    assert outcome.outcome_for("schema", "a.b.c-value").result is ActionResult.FAILED
    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.SKIPPED
    # skips cascade: the ACL's topic was never created either
    assert outcome.outcome_for("acl", read_acl("a.b.c").describe()).result is ActionResult.SKIPPED
    assert cluster.applied == [("schema", "a.b.c-value")]


def test_unexpected_client_error_is_a_failed_outcome(cluster, reconciler_for) -> None:
    cluster.fail(topic("a.b.c"), RuntimeError("connection reset"))

    outcome = reconciler_for(cluster).reconcile({ResourceKind.TOPIC: [topic("a.b.c")]})

    failed = outcome.outcome_for("topic", "a.b.c")
    assert failed.result is ActionResult.FAILED
    assert failed.reason == "connection reset"


def test_incompatible_changes_are_skipped_and_not_failures(cluster_factory, reconciler_for) -> None:
    client = cluster_factory([topic("a.b.c", partitions=6)])

    outcome = reconciler_for(client).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.c", partitions=3)], ResourceKind.ACL: [read_acl("a.b.c")]}
    )

    flagged = outcome.outcome_for("topic", "a.b.c")
    assert flagged.state is State.INCOMPATIBLE
    assert flagged.result is ActionResult.SKIPPED
    assert client.applied == [("acl", read_acl("a.b.c").describe())]
    assert outcome.success
    with pytest.raises(IncompatibleChange):
        outcome.raise_for_incompatible()


def test_observation_failure_only_stops_its_kind(cluster, reconciler_for) -> None:
    cluster.fail_list[ResourceKind.SCHEMA] = ObservationFailure("schema", "registry down")
    schema = Schema(subject="a.b.c-value", schema_str="{}")

    outcome = reconciler_for(cluster).reconcile(
        {
            ResourceKind.SCHEMA: [schema],
            ResourceKind.TOPIC: [topic("a.b.c"), topic("a.b.d")],
        }
    )

    assert [(f.kind, f.reason) for f in outcome.observation_failures] == [
        (ResourceKind.SCHEMA, "registry down")
    ]
    assert not outcome.success
    assert ("schema", "a.b.c-value") not in cluster.applied
    assert outcome.outcome_for("schema", "a.b.c-value").result is ActionResult.SKIPPED
    # a.b.c waits on a schema whose state is unknown; a.b.d has no schema
    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.SKIPPED
    assert outcome.outcome_for("topic", "a.b.d").result is ActionResult.APPLIED


def test_plain_listing_error_becomes_observation_failure(cluster, reconciler_for) -> None:
    cluster.fail_list[ResourceKind.ACL] = TimeoutError("timed out")

    outcome = reconciler_for(cluster).reconcile(
        {ResourceKind.TOPIC: [topic("a.b.c")], ResourceKind.ACL: [read_acl("a.b.c")]}
    )

    assert outcome.observation_failures[0].kind is ResourceKind.ACL
    assert outcome.observation_failures[0].reason == "timed out"
    assert outcome.outcome_for("topic", "a.b.c").result is ActionResult.APPLIED


def test_kinds_missing_from_desired_are_not_observed(cluster, reconciler_for) -> None:
    reconciler_for(cluster).reconcile({"topic": [topic("a.b.c")]})

    assert cluster.list_calls == [(ResourceKind.TOPIC, NS)]
