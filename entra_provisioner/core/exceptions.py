"""Provisioning error taxonomy.

Every stage failure surfaces as one of the kinds below, wrapped in a
``StageFailedError`` that carries the name of the stage that failed.
"""
from __future__ import annotations


class ProvisioningError(Exception):
    """Base exception for all provisioning failures."""

    kind = "ProvisioningError"


class DependencyUnavailableError(ProvisioningError):
    """A required client library is missing or cannot be imported."""

    kind = "DependencyUnavailable"


class AuthenticationFailureError(ProvisioningError):
    """A session with a remote service could not be established."""

    kind = "AuthenticationFailure"


class PrivilegeDeniedError(ProvisioningError):
    """Acting principal holds none of the required administrative roles."""

    kind = "PrivilegeDenied"


class ConsistencyViolationError(ProvisioningError):
    """Read-back after a write did not return the written object."""

    kind = "ConsistencyViolation"


class ResourceNotFoundError(ProvisioningError):
    """Tenant, domain, resource principal or role lookup returned nothing."""

    kind = "ResourceNotFound"


class RemoteOperationFailureError(ProvisioningError):
    """A remote API call raised an error."""

    kind = "RemoteOperationFailure"


class StageFailedError(ProvisioningError):
    """Terminal failure of a provisioning run.

    Attributes:
        stage: Name of the stage that failed
        cause: Taxonomy exception describing the failure
    """

    def __init__(self, stage: str, cause: ProvisioningError):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed ({cause.kind}): {cause}")

    @property
    def kind(self) -> str:
        return self.cause.kind
