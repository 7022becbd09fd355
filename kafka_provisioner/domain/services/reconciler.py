"""Reconciliation run: observe, diff, order, apply, report.

The reconciler is synchronous and keeps no state between runs. Two runs
against the same namespace at the same time are not coordinated here; the
caller must serialize them (for example with an external lock).
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple

from kafka_provisioner.core.config import Settings, get_settings
from kafka_provisioner.core.exceptions import ApplyFailure, DependencySkipped, ObservationFailure
from kafka_provisioner.domain.models.outcome import (
    ActionResult,
    ObservationError,
    ResourceOutcome,
    RunOutcome,
)
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, State, in_namespace
from kafka_provisioner.domain.ports import ClusterClient
from kafka_provisioner.domain.services.changeset import ChangeSetCalculator, build_calculators

logger = logging.getLogger(__name__)

DependencyRule = Callable[[Resource, Resource], bool]

# Stages are applied in this order; a stage starts only after the previous one finished.
APPLY_ORDER: Tuple[ResourceKind, ...] = (ResourceKind.SCHEMA, ResourceKind.TOPIC, ResourceKind.ACL)


def topic_needs_schema(topic: Resource, schema: Resource) -> bool:
    """Topic-name subject strategy: ``<topic>-key`` / ``<topic>-value``."""
    return schema.subject in (f"{topic.name}-key", f"{topic.name}-value")


def acl_needs_topic(acl: Resource, topic: Resource) -> bool:
    return acl.references_topic(topic.name)


# dependent kind -> ((prerequisite kind, rule(dependent, prerequisite)), ...)
DEPENDENCIES: Dict[ResourceKind, Tuple[Tuple[ResourceKind, DependencyRule], ...]] = {
    ResourceKind.TOPIC: ((ResourceKind.SCHEMA, topic_needs_schema),),
    ResourceKind.ACL: ((ResourceKind.TOPIC, acl_needs_topic),),
}

_Key = Tuple[str, Hashable]


def _key(r: Resource) -> _Key:
    return r.kind, r.identity_key()


class Reconciler:
    """Reconciles desired resources of one namespace against the live cluster."""

    def __init__(
        self,
        client: ClusterClient,
        namespace: str,
        calculators: Optional[Mapping[ResourceKind, ChangeSetCalculator]] = None,
        *,
        dependencies: Mapping[ResourceKind, Tuple[Tuple[ResourceKind, DependencyRule], ...]] = DEPENDENCIES,
        settings: Settings | None = None,
    ) -> None:
        if not namespace:
            raise ValueError("namespace prefix must not be empty")
        settings = settings or get_settings()
        self._client = client
        self._namespace = namespace
        self._calculators = dict(calculators) if calculators is not None else build_calculators(settings)
        self._dependencies = dependencies
        self._observe_workers = settings.observe_max_workers
        self._apply_workers = settings.apply_max_workers

    @property
    def namespace(self) -> str:
        return self._namespace

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #
    def reconcile(
        self,
        desired_by_kind: Mapping[ResourceKind | str, Iterable[Resource]],
        dry_run: bool = False,
    ) -> RunOutcome:
        """Run one observe → diff → apply → report cycle.

        Parameters
        ----------
        desired_by_kind : Mapping
            Required resources per kind. Kinds absent from the mapping are
            neither observed nor touched.
        dry_run : bool
            Compute the changeset without applying anything.
        """
        desired = {ResourceKind(k): list(v) for k, v in desired_by_kind.items()}
        kinds = [k for k in APPLY_ORDER if k in desired]

        observed, failures = self._observe(kinds)
        outcome = RunOutcome(namespace=self._namespace, dry_run=dry_run)
        for kind, exc in failures.items():
            outcome.observation_failures.append(ObservationError(kind=kind, reason=exc.reason))

        stages: Dict[ResourceKind, List[Resource]] = {}
        noops: List[ResourceOutcome] = []
        for kind in kinds:
            if kind in failures:
                continue
            stages[kind] = self._changes_for(kind, observed[kind], desired[kind])
            pending = {_key(r) for r in stages[kind]}
            noops.extend(
                _outcome(r.with_state(State.IGNORE), ActionResult.NOOP)
                for r in _unique(desired[kind])
                if _key(r) not in pending
            )
            logger.info(
                "%s: %d observed, %d desired, %d action(s)",
                kind.value, len(observed[kind]), len(desired[kind]), len(stages[kind]),
            )

        outcome.changeset = [r for kind in APPLY_ORDER for r in stages.get(kind, [])]
        outcome.outcomes.extend(noops)
        for kind, exc in failures.items():
            outcome.outcomes.extend(
                _outcome(r, ActionResult.SKIPPED, str(exc)) for r in _unique(desired[kind])
            )

        if dry_run:
            logger.info("Dry run for %s: %d action(s) planned", self._namespace, len(outcome.changeset))
            return outcome

        observed_keys = {_key(r) for resources in observed.values() for r in resources}
        # Prerequisites that are known not to exist after the stages run so far.
        unavailable: Dict[ResourceKind, List[Resource]] = {
            kind: _unique(desired[kind]) for kind in failures
        }
        for kind in APPLY_ORDER:
            if kind not in stages:
                continue
            results = self._apply_stage(kind, stages[kind], unavailable)
            outcome.outcomes.extend(results)
            unavailable[kind] = [
                o.resource
                for o in results
                if o.result is not ActionResult.APPLIED and _key(o.resource) not in observed_keys
            ]

        logger.info(
            "Reconciled %s: %s (success=%s)", self._namespace, outcome.summary(), outcome.success
        )
        return outcome

    # ------------------------------------------------------------------ #
    # Observe & diff                                                      #
    # ------------------------------------------------------------------ #
    def _observe(
        self, kinds: List[ResourceKind]
    ) -> Tuple[Dict[ResourceKind, List[Resource]], Dict[ResourceKind, ObservationFailure]]:
        observed: Dict[ResourceKind, List[Resource]] = {}
        failures: Dict[ResourceKind, ObservationFailure] = {}
        if not kinds:
            return observed, failures

        # Every kind is listed before any calculator runs.
        with ThreadPoolExecutor(max_workers=min(len(kinds), self._observe_workers)) as ex:
            futures = {ex.submit(self._list_existing, kind): kind for kind in kinds}
            for f in as_completed(futures):
                kind = futures[f]
                try:
                    observed[kind] = f.result()
                except Exception as exc:
                    failure = exc if isinstance(exc, ObservationFailure) else ObservationFailure(kind.value, str(exc))
                    logger.error("Observation of %s failed; skipping kind: %s", kind.value, failure.reason)
                    failures[kind] = failure
        return observed, failures

    def _list_existing(self, kind: ResourceKind) -> List[Resource]:
        found = []
        for r in self._client.list_existing(kind, self._namespace):
            if r.kind != kind.value or not in_namespace(r.namespace_key(), self._namespace):
                logger.debug("Dropping observed %s %s outside namespace %s", r.kind, r.describe(), self._namespace)
                continue
            found.append(r)
        return found

    def _changes_for(
        self, kind: ResourceKind, existing: List[Resource], required: List[Resource]
    ) -> List[Resource]:
        in_scope: List[Resource] = []
        flagged: Dict[_Key, Resource] = {}
        for r in required:
            if in_namespace(r.namespace_key(), self._namespace):
                in_scope.append(r)
            else:
                flagged.setdefault(
                    _key(r),
                    r.with_state(State.INCOMPATIBLE, f"outside namespace {self._namespace}"),
                )
        changes = list(flagged.values())
        changes.extend(r for r in self._calculators[kind].calculate(existing, in_scope) if _key(r) not in flagged)
        return changes

    # ------------------------------------------------------------------ #
    # Apply                                                               #
    # ------------------------------------------------------------------ #
    def _apply_stage(
        self,
        kind: ResourceKind,
        actions: List[Resource],
        unavailable: Mapping[ResourceKind, List[Resource]],
    ) -> List[ResourceOutcome]:
        results: Dict[_Key, ResourceOutcome] = {}
        runnable: List[Resource] = []
        for r in actions:
            if r.state is State.INCOMPATIBLE:
                logger.warning("Not applying incompatible %s %s: %s", kind.value, r.describe(), r.detail)
                results[_key(r)] = _outcome(r, ActionResult.SKIPPED, f"incompatible: {r.detail}")
                continue
            blocker = self._blocker(kind, r, unavailable)
            if blocker is not None:
                reason = DependencySkipped(kind.value, r.describe(), blocker)
                logger.warning("%s", reason)
                results[_key(r)] = _outcome(r, ActionResult.SKIPPED, str(reason))
                continue
            runnable.append(r)

        if runnable:
            with ThreadPoolExecutor(max_workers=min(len(runnable), self._apply_workers)) as ex:
                futures = [ex.submit(self._apply_one, r) for r in runnable]
                for f in as_completed(futures):
                    o = f.result()
                    results[_key(o.resource)] = o

        return [results[_key(r)] for r in actions]

    def _blocker(
        self, kind: ResourceKind, r: Resource, unavailable: Mapping[ResourceKind, List[Resource]]
    ) -> Optional[str]:
        for prereq_kind, rule in self._dependencies.get(kind, ()):
            for p in unavailable.get(prereq_kind, ()):
                if rule(r, p):
                    return f"{p.kind} {p.describe()}"
        return None

    def _apply_one(self, r: Resource) -> ResourceOutcome:
        try:
            self._client.apply(r)
        except ApplyFailure as exc:
            logger.error("%s", exc)
            return _outcome(r, ActionResult.FAILED, exc.reason)
        except Exception as exc:
            # Any terminal client error is a per-resource failure, never a run abort.
            logger.error("Failed to apply %s %s %s: %s", r.state.value, r.kind, r.describe(), exc)
            return _outcome(r, ActionResult.FAILED, str(exc) or type(exc).__name__)
        logger.info("Applied %s %s %s", r.state.value, r.kind, r.describe())
        return _outcome(r, ActionResult.APPLIED)


def _unique(resources: Iterable[Resource]) -> List[Resource]:
    seen: Set[_Key] = set()
    out = []
    for r in resources:
        if _key(r) not in seen:
            seen.add(_key(r))
            out.append(r)
    return out


def _outcome(r: Resource, result: ActionResult, reason: str | None = None) -> ResourceOutcome:
    return ResourceOutcome(
        kind=ResourceKind(r.kind),
        identity=r.describe(),
        state=r.state,
        result=result,
        reason=reason,
        resource=r,
    )
