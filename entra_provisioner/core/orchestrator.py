"""
Provisioning Orchestrator: one app registration, end to end

Runs the provisioning stages strictly in order against the remote directory:

    EnsureModules → ImportModules → Connect → VerifyTenant → CheckPrivilege
    → CreateApplication → AssignPermissions → GrantConsent
    → [ConnectMailExtension] → [ConfigureResourceMgmtExtension]
    → IssueCredential → Done

The first failing stage ends the run with ``StageFailedError``. Nothing is
rolled back: objects created by earlier stages stay in the tenant, and a new
run with the same name creates a second, distinct application.
"""
from __future__ import annotations
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .consent import ConsentGranter
from .credentials import CredentialIssuer, DEFAULT_SECRET_NAME, DEFAULT_VALIDITY_MONTHS
from .connection import ControlPlane
from .dependencies import DependencyCheck
from .exceptions import (
    AuthenticationFailureError,
    ConsistencyViolationError,
    PrivilegeDeniedError,
    ProvisioningError,
    RemoteOperationFailureError,
    ResourceNotFoundError,
    StageFailedError,
)
from .arm import IDENTITY_PROVIDER_SCOPE, READER_ROLE, ROOT_SCOPE
from .exchange import ExchangeSession
from .graph.directory import initial_domain
from .graph.exceptions import GraphAPIError, RoleDefinitionNotFoundError, ServicePrincipalNotFoundError
from .models import ConsentGrant, ProvisionedApplication, ProvisionRequest, ProvisionResult, RunProgress
from .permissions import (
    EXCHANGE_ONLINE_APP_ID,
    EXCHANGE_PERMISSIONS,
    GRAPH_PERMISSIONS,
    MICROSOFT_GRAPH_APP_ID,
    RequiredAccessBlock,
    ResourcePrincipal,
    non_empty_blocks,
    resolve_roles,
)
from .privilege import PrivilegeGate

logger = logging.getLogger(__name__)

DEFAULT_PROPAGATION_DELAY = 30.0

ProgressCallback = Callable[[RunProgress, str], None]


class Stage(str, enum.Enum):
    ENSURE_MODULES = "EnsureModules"
    IMPORT_MODULES = "ImportModules"
    CONNECT = "Connect"
    VERIFY_TENANT = "VerifyTenant"
    CHECK_PRIVILEGE = "CheckPrivilege"
    CREATE_APPLICATION = "CreateApplication"
    ASSIGN_PERMISSIONS = "AssignPermissions"
    GRANT_CONSENT = "GrantConsent"
    CONNECT_MAIL_EXTENSION = "ConnectMailExtension"
    CONFIGURE_RESOURCE_MGMT_EXTENSION = "ConfigureResourceMgmtExtension"
    ISSUE_CREDENTIAL = "IssueCredential"
    DONE = "Done"


@dataclass
class RunState:
    """Everything the run has produced so far, kept for inspection after a failure."""

    control_plane: Optional[ControlPlane] = None
    tenant_id: str = ""
    organization: Dict[str, Any] = field(default_factory=dict)
    application: Optional[ProvisionedApplication] = None
    access_blocks: List[RequiredAccessBlock] = field(default_factory=list)
    grants: List[ConsentGrant] = field(default_factory=list)
    mail_session: Optional[ExchangeSession] = None
    role_assignments: List[Dict[str, Any]] = field(default_factory=list)
    result: Optional[ProvisionResult] = None
    completed: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None


def _classify(error: Exception) -> ProvisioningError:
    """Convert a raw stage error into one of the taxonomy kinds."""
    if isinstance(error, ProvisioningError):
        return error
    if isinstance(error, (ServicePrincipalNotFoundError, RoleDefinitionNotFoundError)):
        return ResourceNotFoundError(str(error))
    if isinstance(error, GraphAPIError) and error.is_auth_error:
        return AuthenticationFailureError(str(error))
    return RemoteOperationFailureError(str(error))


class ProvisioningOrchestrator:
    """Sequences the provisioning stages for one ``ProvisionRequest``.

    Collaborators are injected so the whole workflow runs against fakes:
    ``connect`` returns the ``ControlPlane`` and ``sleep`` implements the
    propagation wait.
    """

    def __init__(
        self,
        request: ProvisionRequest,
        connect: Callable[[], ControlPlane],
        *,
        dependency_check: Optional[DependencyCheck] = None,
        propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        secret_validity_months: int = DEFAULT_VALIDITY_MONTHS,
        secret_display_name: str = DEFAULT_SECRET_NAME,
        clock: Optional[Callable] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        if propagation_delay < 0:
            raise ValueError("propagation_delay must not be negative")
        self.request = request
        self._connect = connect
        self.dependency_check = dependency_check or DependencyCheck()
        self.propagation_delay = propagation_delay
        self._sleep = sleep
        self._secret_validity_months = secret_validity_months
        self._secret_display_name = secret_display_name
        self._clock = clock
        self._on_progress = on_progress
        self.state = RunState()

    @property
    def stages(self) -> List[Stage]:
        """Stages this request will execute, in order."""
        stages = [
            Stage.ENSURE_MODULES,
            Stage.IMPORT_MODULES,
            Stage.CONNECT,
            Stage.VERIFY_TENANT,
            Stage.CHECK_PRIVILEGE,
            Stage.CREATE_APPLICATION,
            Stage.ASSIGN_PERMISSIONS,
            Stage.GRANT_CONSENT,
        ]
        if self.request.include_mail_extension:
            stages.append(Stage.CONNECT_MAIL_EXTENSION)
        if self.request.include_resource_mgmt_extension:
            stages.append(Stage.CONFIGURE_RESOURCE_MGMT_EXTENSION)
        stages.append(Stage.ISSUE_CREDENTIAL)
        return stages

    def run(self) -> ProvisionResult:
        """Execute every stage once, in order.

        Returns:
            Tenant id, client id and the freshly issued secret

        Raises:
            StageFailedError: On the first failing stage; later stages do not run
        """
        handlers = {
            Stage.ENSURE_MODULES: self._ensure_modules,
            Stage.IMPORT_MODULES: self._import_modules,
            Stage.CONNECT: self._connect_stage,
            Stage.VERIFY_TENANT: self._verify_tenant,
            Stage.CHECK_PRIVILEGE: self._check_privilege,
            Stage.CREATE_APPLICATION: self._create_application,
            Stage.ASSIGN_PERMISSIONS: self._assign_permissions,
            Stage.GRANT_CONSENT: self._grant_consent,
            Stage.CONNECT_MAIL_EXTENSION: self._connect_mail_extension,
            Stage.CONFIGURE_RESOURCE_MGMT_EXTENSION: self._configure_resource_mgmt_extension,
            Stage.ISSUE_CREDENTIAL: self._issue_credential,
        }
        stages = self.stages
        total = len(stages)
        logger.info("Provisioning '%s' (%d stages)", self.request.application_name, total)

        for index, stage in enumerate(stages):
            self._report(RunProgress(index, total), stage)
            try:
                handlers[stage]()
            except Exception as e:
                cause = _classify(e)
                self.state.failed_stage = stage.value
                logger.error("Stage %s failed (%s): %s", stage.value, cause.kind, cause)
                raise StageFailedError(stage.value, cause) from e
            self.state.completed.append(stage.value)
            logger.debug("Stage %s completed", stage.value)

        self._report(RunProgress(total, total), Stage.DONE)
        return self.state.result

    def _report(self, progress: RunProgress, stage: Stage) -> None:
        if self._on_progress is not None:
            self._on_progress(progress, stage.value)

    @property
    def _plane(self) -> ControlPlane:
        return self.state.control_plane

    # ─────────────────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────────────────
    def _ensure_modules(self) -> None:
        self.dependency_check.ensure()

    def _import_modules(self) -> None:
        self.dependency_check.import_all()

    def _connect_stage(self) -> None:
        try:
            self.state.control_plane = self._connect()
        except ProvisioningError:
            raise
        except Exception as e:
            raise AuthenticationFailureError(f"Could not establish directory session: {e}") from e

    def _verify_tenant(self) -> None:
        organizations = self._plane.directory.list_organizations()
        if not organizations:
            raise ResourceNotFoundError("Directory returned no organization record")
        if len(organizations) > 1:
            logger.warning("Directory returned %d organization records, using the first", len(organizations))
        self.state.organization = organizations[0]
        self.state.tenant_id = organizations[0]["id"]
        logger.info("Connected to tenant %s", self.state.tenant_id)

    def _check_privilege(self) -> None:
        principal_id = self._plane.acting_principal_id
        if not PrivilegeGate(self._plane.directory).check(principal_id):
            raise PrivilegeDeniedError(
                f"Principal {principal_id} is not a Global, Application or Cloud Application Administrator"
            )

    def _create_application(self) -> None:
        applications = self._plane.applications
        created = applications.create_application(self.request.application_name)
        object_id = created.get("id")

        read_back = applications.get_application(object_id) if object_id else None
        if read_back is None or read_back.get("id") != object_id:
            raise ConsistencyViolationError(
                f"Application '{self.request.application_name}' ({object_id}) not readable after creation"
            )

        service_principal = applications.create_service_principal(created["appId"])
        self.state.application = ProvisionedApplication(
            client_id=created["appId"],
            object_id=object_id,
            service_principal_object_id=service_principal["id"],
        )
        logger.info("Created application %s (client id %s)", object_id, created["appId"])

    def _resource(self, app_id: str) -> ResourcePrincipal:
        return ResourcePrincipal.from_graph(self._plane.applications.get_service_principal_by_app_id(app_id))

    def _assign_permissions(self) -> None:
        blocks = [resolve_roles(self._resource(MICROSOFT_GRAPH_APP_ID), GRAPH_PERMISSIONS)]
        if self.request.include_mail_extension:
            blocks.append(resolve_roles(self._resource(EXCHANGE_ONLINE_APP_ID), EXCHANGE_PERMISSIONS))

        self.state.access_blocks = non_empty_blocks(blocks)
        if not self.state.access_blocks:
            logger.warning("No requested permission could be resolved; required access left unchanged")
            return
        self._plane.applications.update_required_access(
            self.state.application.object_id,
            [block.to_graph() for block in self.state.access_blocks],
        )
        logger.info(
            "Declared %d application roles across %d resources",
            sum(len(block.roles) for block in self.state.access_blocks),
            len(self.state.access_blocks),
        )

    def _grant_consent(self) -> None:
        granter = ConsentGranter(self._plane.applications, self.state.application.service_principal_object_id)
        try:
            granter.grant_blocks(self.state.access_blocks)
        finally:
            self.state.grants = granter.grants
        self._wait_for_propagation()

    def _wait_for_propagation(self) -> None:
        logger.info("Waiting %.0fs for directory propagation", self.propagation_delay)
        self._sleep(self.propagation_delay)

    def _connect_mail_extension(self) -> None:
        domain = initial_domain(self.state.organization)
        if domain is None:
            raise ResourceNotFoundError(f"Tenant {self.state.tenant_id} has no verified domain")
        application = self.state.application
        self.state.mail_session = self._plane.exchange.connect_app_only(
            application.client_id, domain, application.service_principal_object_id
        )

    def _configure_resource_mgmt_extension(self) -> None:
        arm = self._plane.resource_management
        arm.elevate_access_to_root()
        principal_id = self.state.application.service_principal_object_id
        for scope in (ROOT_SCOPE, IDENTITY_PROVIDER_SCOPE):
            self.state.role_assignments.append(arm.create_role_assignment(principal_id, scope, READER_ROLE))

    def _issue_credential(self) -> None:
        issuer = CredentialIssuer(
            self._plane.applications,
            validity_months=self._secret_validity_months,
            display_name=self._secret_display_name,
            clock=self._clock,
        )
        secret = issuer.issue(self.state.application.object_id)
        self.state.result = ProvisionResult(
            tenant_id=self.state.tenant_id,
            client_id=self.state.application.client_id,
            client_secret=secret,
        )
