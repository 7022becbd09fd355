"""ACL binding resource."""
from __future__ import annotations

from typing import Literal, Tuple

from pydantic import Field, field_validator

from kafka_provisioner.domain.models.resource import Resource

AclResourceType = Literal["TOPIC", "GROUP", "CLUSTER", "TRANSACTIONAL_ID"]
AclPatternType = Literal["LITERAL", "PREFIXED"]
AclOperation = Literal[
    "ALL", "READ", "WRITE", "CREATE", "DELETE", "ALTER", "DESCRIBE",
    "CLUSTER_ACTION", "DESCRIBE_CONFIGS", "ALTER_CONFIGS", "IDEMPOTENT_WRITE",
]
AclPermission = Literal["ALLOW", "DENY"]


class Acl(Resource):
    """One ACL binding: *principal* may (or may not) run *operation* on a resource pattern.

    The permission is the binding's only configuration; everything else is
    identity. A topic is referenced by name only, never by type.
    """

    kind: Literal["acl"] = "acl"
    principal: str = Field(..., examples=["User:london.hammersmith.transport"])
    resource_type: AclResourceType = "TOPIC"
    resource_name: str
    pattern_type: AclPatternType = "LITERAL"
    operation: AclOperation
    permission: AclPermission = "ALLOW"
    host: str = "*"

    @field_validator("resource_type", "pattern_type", "operation", "permission", mode="before")
    @classmethod
    def _upper(cls, v):
        return v.upper() if isinstance(v, str) else v

    def identity_key(self) -> Tuple[str, str, str, str, str, str]:
        return (
            self.principal,
            self.resource_type,
            self.pattern_type,
            self.resource_name,
            self.operation,
            self.host,
        )

    def namespace_key(self) -> str:
        return self.resource_name

    def configuration_equals(self, other: Resource) -> bool:
        return isinstance(other, Acl) and self.permission == other.permission

    def references_topic(self, topic_name: str) -> bool:
        """True when this binding names *topic_name* literally."""
        return (
            self.resource_type == "TOPIC"
            and self.pattern_type == "LITERAL"
            and self.resource_name == topic_name
        )
