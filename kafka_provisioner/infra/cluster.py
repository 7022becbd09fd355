"""ClusterClient implementation over the Kafka admin API and Schema Registry."""
from __future__ import annotations

from typing import List

from kafka_provisioner.core.exceptions import ApplyFailure, ObservationFailure
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State
from kafka_provisioner.infra.kafka.admin import KafkaAdminFacade
from kafka_provisioner.infra.schema_registry.client import SchemaRegistryClient


class KafkaClusterClient:
    """Dispatches list/apply calls to the adapter that owns each kind."""

    def __init__(self, admin: KafkaAdminFacade, registry: SchemaRegistryClient | None = None) -> None:
        self._admin = admin
        self._registry = registry

    def list_existing(self, kind: ResourceKind, namespace_prefix: str) -> List[Resource]:
        kind = ResourceKind(kind)
        if kind is ResourceKind.TOPIC:
            return self._admin.list_topics(namespace_prefix)
        if kind is ResourceKind.ACL:
            return self._admin.list_acls(namespace_prefix)
        if self._registry is None:
            raise ObservationFailure(kind.value, "no schema registry configured")
        return self._registry.list_schemas(namespace_prefix)

    def supports(self, kind: ResourceKind) -> bool:
        return ResourceKind(kind) is not ResourceKind.SCHEMA or self._registry is not None

    def apply(self, resource: Resource) -> None:
        kind = ResourceKind(resource.kind)
        if resource.state not in (State.CREATE, State.UPDATE):
            raise ApplyFailure(kind.value, resource.describe(), f"cannot apply state {resource.state.value}")

        if kind is ResourceKind.TOPIC:
            if resource.state is State.CREATE:
                self._admin.create_topic(resource)
            else:
                self._admin.alter_topic(resource)
        elif kind is ResourceKind.ACL:
            # bindings are never altered; an UPDATE never reaches here from the calculators
            self._admin.create_acl(resource)
        else:
            if self._registry is None:
                raise ApplyFailure(kind.value, resource.describe(), "no schema registry configured")
            self._registry.register(resource)

    def close(self) -> None:
        self._admin.close()
        if self._registry is not None:
            self._registry.close()
