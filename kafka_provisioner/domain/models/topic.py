"""Topic resource."""
from __future__ import annotations

from typing import Dict, Literal

from pydantic import Field, field_validator

from kafka_provisioner.domain.models.resource import Resource


class Topic(Resource):
    """Immutable view of a Kafka topic's configuration."""

    kind: Literal["topic"] = "topic"
    name: str = Field(
        ...,
        pattern=r"^[\w\-.]+$",
        examples=["london.hammersmith.transport._public.tube"],
        description="Kafka topic name",
    )
    partitions: int = Field(..., ge=1)
    replication_factor: int = Field(..., ge=1)
    configs: Dict[str, str] = Field(default_factory=dict)

    @field_validator("configs", mode="before")
    @classmethod
    def lowercase_keys(cls, v):
        """Ensure config keys are case-insensitive and values are strings."""
        if v is None:
            return {}
        return {str(k).lower(): "" if val is None else str(val) for k, val in dict(v).items()}

    def identity_key(self) -> str:
        return self.name

    def namespace_key(self) -> str:
        return self.name

    def configuration_equals(self, other: Resource) -> bool:
        """True when *other* satisfies every setting declared by this topic.

        Only config keys present on ``self`` are compared; broker defaults
        reported on the observed side are not drift.
        """
        if not isinstance(other, Topic):
            return False
        if (self.partitions, self.replication_factor) != (other.partitions, other.replication_factor):
            return False
        return all(other.configs.get(k) == v for k, v in self.configs.items())

    def config_drift(self, other: "Topic") -> Dict[str, str]:
        """Declared configs whose value differs on *other*."""
        return {k: v for k, v in self.configs.items() if other.configs.get(k) != v}
