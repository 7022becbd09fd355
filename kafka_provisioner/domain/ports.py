"""Capability the reconciler needs from the cluster side."""
from __future__ import annotations

from typing import Iterable, Protocol

from kafka_provisioner.domain.models.resource import Resource, ResourceKind


class ClusterClient(Protocol):
    """List and mutate cluster resources, one kind at a time.

    Implementations own their own timeouts and retries. ``apply`` raises on
    a terminal failure (preferably :class:`ApplyFailure`); ``list_existing``
    raises when the baseline cannot be read.
    """

    def list_existing(self, kind: ResourceKind, namespace_prefix: str) -> Iterable[Resource]:
        ...

    def apply(self, resource: Resource) -> None:
        """Carry out ``resource.state`` (CREATE or UPDATE) for *resource*."""
        ...

    def supports(self, kind: ResourceKind) -> bool:
        """False when no backend for *kind* is configured."""
        ...
