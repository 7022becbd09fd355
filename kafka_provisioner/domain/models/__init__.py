"""Resource, contract and outcome models."""
from kafka_provisioner.domain.models.acl import Acl
from kafka_provisioner.domain.models.outcome import ActionResult, ResourceOutcome, RunOutcome
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State
from kafka_provisioner.domain.models.schema import Schema, SchemaReference
from kafka_provisioner.domain.models.topic import Topic

__all__ = [
    "Acl",
    "ActionResult",
    "Resource",
    "ResourceKind",
    "ResourceOutcome",
    "RunOutcome",
    "Schema",
    "SchemaReference",
    "State",
    "Topic",
]
