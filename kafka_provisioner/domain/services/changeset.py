"""Change-set calculation: diff required resources against existing ones.

One calculator shape serves every resource kind; kinds differ only in the
identity/equality methods of their model and in the update policy the
calculator is built with.

Existing resources without a required counterpart are never emitted. The
provisioner does not delete: dropping a channel from an application's
contract must not remove live topics, ACLs or schemas from the cluster.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List

from kafka_provisioner.core.config import Settings, get_settings
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State
from kafka_provisioner.domain.services.update_policy import UpdatePolicy, policies_from_settings

logger = logging.getLogger(__name__)


def _group(resources: Iterable[Resource], kind: ResourceKind) -> Dict[Hashable, List[Resource]]:
    grouped: Dict[Hashable, List[Resource]] = {}
    for r in resources:
        if r.kind != kind.value:
            logger.debug("Ignoring %s %s passed to %s calculator", r.kind, r.describe(), kind.value)
            continue
        grouped.setdefault(r.identity_key(), []).append(r)
    return grouped


@dataclass(frozen=True)
class ChangeSetCalculator:
    """Returns the resources to create/update, tagged with their action state.

    With ``create_only`` drift on existing resources is ignored and only
    ``CREATE`` entries are produced.
    """

    kind: ResourceKind
    classify: UpdatePolicy
    create_only: bool = False

    def calculate(
        self, existing: Iterable[Resource], required: Iterable[Resource]
    ) -> List[Resource]:
        """
        Parameters
        ----------
        existing : Iterable[Resource]
            Resources observed on the cluster.
        required : Iterable[Resource]
            Resources that should exist.

        Returns
        -------
        list[Resource]
            One entry per identity needing action, in required order. Never
            raises for data problems; those come back as ``INCOMPATIBLE``.
        """
        existing_by_key = _group(existing, self.kind)
        changes: List[Resource] = []

        for key, candidates in _group(required, self.kind).items():
            wanted = candidates[0]
            if any(
                not (wanted.configuration_equals(c) and c.configuration_equals(wanted))
                for c in candidates[1:]
            ):
                changes.append(
                    wanted.with_state(
                        State.INCOMPATIBLE,
                        f"{len(candidates)} conflicting required definitions",
                    )
                )
                continue

            found = existing_by_key.get(key, [])
            if not found:
                changes.append(wanted.with_state(State.CREATE))
                continue
            if len(found) > 1:
                changes.append(
                    wanted.with_state(
                        State.INCOMPATIBLE,
                        f"ambiguous: {len(found)} existing resources share this identity",
                    )
                )
                continue

            current = found[0]
            if wanted.configuration_equals(current):
                continue
            if self.create_only:
                logger.debug("create-only: ignoring drift on %s %s", self.kind.value, wanted.describe())
                continue
            changes.append(self._classify(current, wanted))

        return changes

    def _classify(self, current: Resource, wanted: Resource) -> Resource:
        try:
            state, detail = self.classify(current, wanted)
        except Exception as exc:
            logger.warning(
                "Update policy failed for %s %s: %s", self.kind.value, wanted.describe(), exc
            )
            return wanted.with_state(State.INCOMPATIBLE, f"update policy error: {exc}")
        if state not in (State.UPDATE, State.INCOMPATIBLE):
            return wanted.with_state(
                State.INCOMPATIBLE, f"update policy returned {state.value} for drifted resource"
            )
        return wanted.with_state(state, detail)


def build_calculators(settings: Settings | None = None) -> Dict[ResourceKind, ChangeSetCalculator]:
    """Return one calculator per kind configured from *settings*."""
    settings = settings or get_settings()
    policies = policies_from_settings(settings)
    return {
        kind: ChangeSetCalculator(kind=kind, classify=policies[kind], create_only=settings.create_only)
        for kind in ResourceKind
    }
