"""Predicates deciding whether drift is a safe ``UPDATE`` or ``INCOMPATIBLE``.

Which topic settings a broker can change in place depends on the cluster
version, so the topic rule is configurable rather than fixed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from kafka_provisioner.core.config import Settings
from kafka_provisioner.domain.models.acl import Acl
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State
from kafka_provisioner.domain.models.schema import Schema
from kafka_provisioner.domain.models.topic import Topic

Classification = Tuple[State, Optional[str]]
UpdatePolicy = Callable[[Resource, Resource], Classification]


@dataclass(frozen=True)
class TopicUpdatePolicy:
    """Topic drift rule.

    Partition decreases and replication-factor changes are never applied;
    a partition increase is allowed unless disabled; any drifted key listed
    in *immutable_configs* is flagged.
    """

    allow_partition_increase: bool = True
    immutable_configs: FrozenSet[str] = frozenset()

    def __call__(self, existing: Topic, required: Topic) -> Classification:
        problems = []
        changes = []

        if required.partitions < existing.partitions:
            problems.append(f"partition decrease {existing.partitions}->{required.partitions}")
        elif required.partitions > existing.partitions:
            if self.allow_partition_increase:
                changes.append(f"partitions {existing.partitions}->{required.partitions}")
            else:
                problems.append(
                    f"partition increase {existing.partitions}->{required.partitions} not allowed"
                )

        if required.replication_factor != existing.replication_factor:
            problems.append(
                f"replication factor change {existing.replication_factor}->{required.replication_factor}"
            )

        drift = required.config_drift(existing)
        locked = sorted(k for k in drift if k in self.immutable_configs)
        if locked:
            problems.append("immutable config changed: " + ", ".join(locked))
        elif drift:
            changes.append("configs " + ", ".join(sorted(drift)))

        if problems:
            return State.INCOMPATIBLE, "; ".join(problems)
        return State.UPDATE, "; ".join(changes) or None


def acl_update_policy(existing: Acl, required: Acl) -> Classification:
    # A binding cannot be altered; flipping it means deleting the old one.
    return (
        State.INCOMPATIBLE,
        f"permission {existing.permission}->{required.permission} requires removing the existing binding",
    )


def schema_update_policy(existing: Schema, required: Schema) -> Classification:
    if existing.schema_type != required.schema_type:
        return State.INCOMPATIBLE, f"schema type {existing.schema_type}->{required.schema_type}"
    return State.UPDATE, "register new version"


def policies_from_settings(settings: Settings) -> Dict[ResourceKind, UpdatePolicy]:
    return {
        ResourceKind.TOPIC: TopicUpdatePolicy(
            allow_partition_increase=settings.allow_partition_increase,
            immutable_configs=frozenset(settings.immutable_topic_configs),
        ),
        ResourceKind.ACL: acl_update_policy,
        ResourceKind.SCHEMA: schema_update_policy,
    }
