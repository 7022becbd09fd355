"""Schema Registry subject resource."""
from __future__ import annotations

import json
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from kafka_provisioner.domain.models.resource import Resource

SchemaType = Literal["AVRO", "JSON", "PROTOBUF"]


class SchemaReference(BaseModel):
    """Reference to another registered schema version."""

    model_config = ConfigDict(frozen=True)

    name: str
    subject: str
    version: int = Field(..., ge=1)


class Schema(Resource):
    """Latest schema registered under a subject."""

    kind: Literal["schema"] = "schema"
    subject: str = Field(..., examples=["simple.schema_demo._public.user_signed_up-value"])
    schema_type: SchemaType = "AVRO"
    schema_str: str
    references: List[SchemaReference] = Field(default_factory=list)

    def identity_key(self) -> str:
        return self.subject

    def namespace_key(self) -> str:
        return self.subject

    def canonical(self) -> str:
        """Schema text with formatting differences removed.

        AVRO and JSON schemas are re-serialised with sorted keys; text that
        does not parse (and PROTOBUF) is compared whitespace-trimmed.
        """
        if self.schema_type in ("AVRO", "JSON"):
            try:
                return json.dumps(json.loads(self.schema_str), sort_keys=True, separators=(",", ":"))
            except ValueError:
                pass
        return " ".join(self.schema_str.split())

    def configuration_equals(self, other: Resource) -> bool:
        return (
            isinstance(other, Schema)
            and self.schema_type == other.schema_type
            and self.canonical() == other.canonical()
            and sorted(self.references, key=_ref_key) == sorted(other.references, key=_ref_key)
        )


def _ref_key(ref: SchemaReference):
    return (ref.name, ref.subject, ref.version)
