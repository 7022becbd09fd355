"""Provisioning endpoints: dry-run plan and apply."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from kafka_provisioner.api.dependencies import get_provisioning_service, require_jwt
from kafka_provisioner.core.exceptions import ProblemDetailException
from kafka_provisioner.domain.models.app_spec import AppSpec
from kafka_provisioner.domain.models.outcome import RunOutcome
from kafka_provisioner.domain.services.provisioner import ProvisioningService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/provisioning", tags=["provisioning"])


def _require_backends(svc: ProvisioningService, spec: AppSpec) -> None:
    missing = svc.unsupported_kinds(spec)
    if missing:
        raise ProblemDetailException(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Backend not configured",
            type_="/backend-not-configured",
            detail=f"{spec.id} needs {', '.join(k.value for k in missing)} but no backend is configured",
        )


@router.post("/plan", response_model=RunOutcome)
def plan(
    spec: AppSpec,
    svc: ProvisioningService = Depends(get_provisioning_service),
    claims: dict = Depends(require_jwt),
) -> RunOutcome:
    """Return the changeset *spec* would cause; nothing is applied."""
    logger.info("Plan for %s requested by %s", spec.id, claims["sub"])
    _require_backends(svc, spec)
    return svc.plan(spec)


@router.post(
    "/apply",
    response_model=RunOutcome,
    responses={status.HTTP_207_MULTI_STATUS: {"model": RunOutcome}},
)
def apply(
    spec: AppSpec,
    svc: ProvisioningService = Depends(get_provisioning_service),
    claims: dict = Depends(require_jwt),
) -> JSONResponse:
    """Reconcile the cluster with *spec*.

    200 when every action succeeded, 207 when the run finished with failures,
    503 when a required backend (e.g. Schema Registry) is not configured.
    """
    logger.info("Apply for %s requested by %s", spec.id, claims["sub"])
    _require_backends(svc, spec)
    outcome = svc.apply(spec)
    return JSONResponse(
        status_code=status.HTTP_200_OK if outcome.success else status.HTTP_207_MULTI_STATUS,
        content=outcome.model_dump(mode="json"),
    )
