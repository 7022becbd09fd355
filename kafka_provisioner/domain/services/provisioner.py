"""Use-case coordination: contract in, run outcome out."""
from __future__ import annotations

from typing import List

from kafka_provisioner.core.config import Settings, get_settings
from kafka_provisioner.domain.models.app_spec import AppSpec
from kafka_provisioner.domain.models.outcome import RunOutcome
from kafka_provisioner.domain.models.resource import ResourceKind
from kafka_provisioner.domain.ports import ClusterClient
from kafka_provisioner.domain.services.changeset import build_calculators
from kafka_provisioner.domain.services.ownership import derive_desired
from kafka_provisioner.domain.services.reconciler import Reconciler


class ProvisioningService:
    """Stateless wrapper combining ownership rules and the reconciler."""

    def __init__(self, client: ClusterClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._calculators = build_calculators(self._settings)

    def plan(self, spec: AppSpec) -> RunOutcome:
        """Dry run: compute the changeset for *spec* without touching the cluster."""
        return self._run(spec, dry_run=True)

    def apply(self, spec: AppSpec) -> RunOutcome:
        return self._run(spec, dry_run=False)

    def unsupported_kinds(self, spec: AppSpec) -> List[ResourceKind]:
        """Kinds *spec* needs that the cluster client has no backend for."""
        return [kind for kind in derive_desired(spec) if not self._client.supports(kind)]

    def _run(self, spec: AppSpec, *, dry_run: bool) -> RunOutcome:
        reconciler = Reconciler(
            self._client,
            namespace=spec.id,
            calculators=self._calculators,
            settings=self._settings,
        )
        return reconciler.reconcile(derive_desired(spec), dry_run=dry_run)
