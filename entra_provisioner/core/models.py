"""Records exchanged between provisioning stages."""
from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProvisionRequest:
    """What the operator asked for. Immutable for the whole run."""

    application_name: str
    include_mail_extension: bool = False
    include_resource_mgmt_extension: bool = False

    def __post_init__(self):
        if not isinstance(self.application_name, str) or not self.application_name.strip():
            raise ValueError("application_name must be a non-empty string")


@dataclass(frozen=True)
class ProvisionedApplication:
    """Identifiers of the application created by this run.

    ``object_id`` is the key every later stage uses; ``client_id`` is the
    appId handed out to consumers of the credential.
    """

    client_id: str
    object_id: str
    service_principal_object_id: str


@dataclass(frozen=True)
class ConsentGrant:
    service_principal_id: str
    resource_id: str
    role_id: str


@dataclass(frozen=True)
class ProvisionResult:
    """Outcome of a successful run. The secret is shown once and never stored."""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)

    def as_dict(self) -> dict[str, str]:
        return {
            "tenantId": self.tenant_id,
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
        }


@dataclass(frozen=True)
class RunProgress:
    """Position of the orchestrator within the active stage list."""

    current_stage: int
    total_stages: int

    @property
    def percent(self) -> int:
        if self.total_stages <= 0:
            return 0
        raw = self.current_stage / self.total_stages * 100
        return int(max(0, min(100, raw)))
