from __future__ import annotations

import threading
from typing import Dict, Hashable, Iterable, List, Set, Tuple

import pytest

from kafka_provisioner.core.config import Settings
from kafka_provisioner.core.exceptions import ApplyFailure
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State


class FakeClusterClient:
    """In-memory cluster: records calls, applies into its own state, fails on demand."""

    def __init__(self, existing: Iterable[Resource] = ()) -> None:
        self.existing: Dict[ResourceKind, List[Resource]] = {k: [] for k in ResourceKind}
        for r in existing:
            self.existing[ResourceKind(r.kind)].append(r)
        self.fail_apply: Dict[Tuple[str, Hashable], Exception] = {}
        self.fail_list: Dict[ResourceKind, Exception] = {}
        self.unsupported: Set[ResourceKind] = set()
        self.list_calls: List[Tuple[ResourceKind, str]] = []
        self.events: List[Tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def fail(self, resource: Resource, exc: Exception | None = None) -> None:
        self.fail_apply[(resource.kind, resource.identity_key())] = exc or ApplyFailure(
            resource.kind, resource.describe(), "rejected by broker"
        )

    def supports(self, kind: ResourceKind) -> bool:
        return kind not in self.unsupported

    def list_existing(self, kind: ResourceKind, namespace_prefix: str) -> List[Resource]:
        with self._lock:
            self.list_calls.append((kind, namespace_prefix))
        if kind in self.fail_list:
            raise self.fail_list[kind]
        return list(self.existing[kind])

    def apply(self, resource: Resource) -> None:
        with self._lock:
            self.events.append(("start", resource.kind, resource.describe()))
        try:
            exc = self.fail_apply.get((resource.kind, resource.identity_key()))
            if exc is not None:
                raise exc
            stored = resource.with_state(State.UNSPECIFIED)
            with self._lock:
                bucket = self.existing[ResourceKind(resource.kind)]
                bucket[:] = [r for r in bucket if r.identity_key() != stored.identity_key()] + [stored]
        finally:
            with self._lock:
                self.events.append(("end", resource.kind, resource.describe()))

    @property
    def applied(self) -> List[Tuple[str, str]]:
        return [(kind, identity) for what, kind, identity in self.events if what == "start"]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        observe_max_workers=3,
        apply_max_workers=4,
        allow_partition_increase=True,
        immutable_topic_configs=[],
        create_only=False,
    )


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def cluster_factory():
    return FakeClusterClient
