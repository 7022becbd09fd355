"""Per-resource results and the run summary returned by the reconciler."""
from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, Field, computed_field

from kafka_provisioner.core.exceptions import IncompatibleChange
from kafka_provisioner.domain.models.acl import Acl
from kafka_provisioner.domain.models.resource import ResourceKind, State
from kafka_provisioner.domain.models.schema import Schema
from kafka_provisioner.domain.models.topic import Topic

AnyResource = Annotated[Union[Topic, Acl, Schema], Field(discriminator="kind")]


class ActionResult(str, Enum):
    APPLIED = "APPLIED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
    NOOP = "NOOP"


class ResourceOutcome(BaseModel):
    """What happened to one desired resource during a run."""

    kind: ResourceKind
    identity: str
    state: State
    result: ActionResult
    reason: Optional[str] = None
    resource: AnyResource


class ObservationError(BaseModel):
    """A kind whose existing resources could not be listed."""

    kind: ResourceKind
    reason: str


class RunOutcome(BaseModel):
    """Sole externally visible artifact of a reconciliation run.

    ``changeset`` holds the ordered actions that were computed (and, unless
    ``dry_run``, attempted). ``outcomes`` has one entry per desired resource
    of every observed kind, including ``NOOP`` entries for matching ones.
    """

    namespace: str
    dry_run: bool = False
    changeset: List[AnyResource] = Field(default_factory=list)
    outcomes: List[ResourceOutcome] = Field(default_factory=list)
    observation_failures: List[ObservationError] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        if self.observation_failures:
            return False
        return not any(o.result is ActionResult.FAILED for o in self.outcomes)

    def outcome_for(self, kind: ResourceKind | str, identity: str) -> ResourceOutcome | None:
        kind = ResourceKind(kind)
        for o in self.outcomes:
            if o.kind is kind and o.identity == identity:
                return o
        return None

    def incompatible(self) -> List[AnyResource]:
        return [r for r in self.changeset if r.state is State.INCOMPATIBLE]

    def raise_for_incompatible(self) -> None:
        """Raise :class:`IncompatibleChange` for the first flagged entry, if any."""
        for r in self.incompatible():
            raise IncompatibleChange(r.kind, r.describe(), r.detail)

    def summary(self) -> Dict[str, int]:
        counts = Counter(o.result.value for o in self.outcomes)
        return {r.value: counts.get(r.value, 0) for r in ActionResult}
