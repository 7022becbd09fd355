"""Shared resource contract: identity, lifecycle state, configuration drift."""
from __future__ import annotations

from enum import Enum
from typing import Hashable

from pydantic import BaseModel, ConfigDict


class ResourceKind(str, Enum):
    """Resource kinds, listed in apply order (prerequisites first)."""

    SCHEMA = "schema"
    TOPIC = "topic"
    ACL = "acl"


class State(str, Enum):
    """Action tag attached to a resource instance by a calculator pass."""

    UNSPECIFIED = "UNSPECIFIED"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    IGNORE = "IGNORE"
    INCOMPATIBLE = "INCOMPATIBLE"


def in_namespace(key: str, namespace: str) -> bool:
    """True when *key* is *namespace* itself or a dotted child of it.

    ``a.b.c`` is inside ``a.b``; the sibling ``a.bc.d`` is not.
    """
    return key == namespace or key.startswith(f"{namespace}.")


class Resource(BaseModel):
    """Immutable resource value.

    Equality and hashing use ``(kind, identity_key())`` only, so a desired
    and an observed instance of the same resource compare equal whatever
    their configuration or state.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    state: State = State.UNSPECIFIED
    detail: str | None = None

    def identity_key(self) -> Hashable:
        raise NotImplementedError

    def namespace_key(self) -> str:
        """String checked against the run's namespace with :func:`in_namespace`."""
        raise NotImplementedError

    def configuration_equals(self, other: "Resource") -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        """Human readable identity, used in logs and outcomes."""
        key = self.identity_key()
        return ":".join(key) if isinstance(key, tuple) else str(key)

    def with_state(self, state: State, detail: str | None = None) -> "Resource":
        """Return a copy tagged with *state*; the receiver is left untouched."""
        return self.model_copy(update={"state": state, "detail": detail})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self.kind == other.kind and self.identity_key() == other.identity_key()

    def __hash__(self) -> int:
        return hash((self.kind, self.identity_key()))
