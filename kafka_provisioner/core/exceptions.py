"""Provisioning error taxonomy and RFC 7807 *Problem Details* support."""
from __future__ import annotations

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# --------------------------------------------------------------------------- #
# Provisioning errors                                                         #
# --------------------------------------------------------------------------- #
class ProvisioningError(Exception):
    """Base class for every error raised by the provisioner."""


class IncompatibleChange(ProvisioningError):
    """A required resource exists but cannot be reconciled in place.

    Calculators report this as an ``INCOMPATIBLE`` changeset entry; the
    exception is only raised by callers that opt in via
    ``RunOutcome.raise_for_incompatible()``.
    """

    def __init__(self, kind: str, identity: str, detail: str | None = None) -> None:
        self.kind = kind
        self.identity = identity
        self.detail = detail
        msg = f"incompatible {kind} change for {identity}"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class ApplyFailure(ProvisioningError):
    """The cluster rejected a create/alter call for one resource."""

    def __init__(self, kind: str, identity: str, reason: str) -> None:
        self.kind = kind
        self.identity = identity
        self.reason = reason
        super().__init__(f"failed to apply {kind} {identity}: {reason}")


class DependencySkipped(ProvisioningError):
    """An action was not attempted because a prerequisite did not succeed."""

    def __init__(self, kind: str, identity: str, prerequisite: str) -> None:
        self.kind = kind
        self.identity = identity
        self.prerequisite = prerequisite
        super().__init__(f"skipped {kind} {identity}: prerequisite {prerequisite} unavailable")


class ObservationFailure(ProvisioningError):
    """Listing existing resources of one kind failed."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"could not observe {kind} resources: {reason}")


# --------------------------------------------------------------------------- #
# HTTP problem details                                                        #
# --------------------------------------------------------------------------- #
class ProblemDetail(BaseModel):
    """Data model that serialises to RFC 7807 JSON.

    Attributes
    ----------
    type : str
        A URI reference that identifies the problem type.
    title : str
        A short human-readable summary of the problem type.
    status : int
        The HTTP status code.
    detail : str | None
        A human-readable explanation specific to this occurrence.
    instance : str
        A URI reference that identifies the specific occurrence.
    """

    model_config = ConfigDict(json_schema_extra={"required": ["type", "title", "status"]})

    type: str = Field("about:blank", examples=["/backend-not-configured"])
    title: str
    status: int = Field(..., ge=400, le=599)
    detail: Optional[str] = None
    instance: str = Field(default_factory=lambda: f"urn:uuid:{uuid4()}")


class ProblemDetailException(Exception):
    """Raise inside routers to trigger a 7807 response."""

    def __init__(
        self,
        status_code: int,
        title: str,
        type_: str = "about:blank",
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(title)
        self.problem = ProblemDetail(
            status=status_code,
            title=title,
            type=type_,
            detail=detail,
        )
