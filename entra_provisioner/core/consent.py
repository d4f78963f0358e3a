"""Admin consent: app role assignments for every resolved permission."""
from __future__ import annotations
import logging
from typing import Iterable

from .graph.applications import ApplicationService
from .models import ConsentGrant
from .permissions import RequiredAccessBlock

logger = logging.getLogger(__name__)


class ConsentGranter:
    """Grants resolved application roles to a service principal.

    Grants are self-referential: the provisioned service principal is both the
    path segment of the assignment call and its ``principalId``. Each
    (resource, role) pair is granted at most once per granter instance.
    """

    def __init__(self, applications: ApplicationService, service_principal_id: str):
        self.applications = applications
        self.service_principal_id = service_principal_id
        self._granted: dict[tuple[str, str], ConsentGrant] = {}

    def grant(self, resource_id: str, role_id: str) -> ConsentGrant:
        """Create one durable grant, or return the one already issued for this pair."""
        key = (resource_id, role_id)
        existing = self._granted.get(key)
        if existing is not None:
            return existing

        self.applications.create_app_role_assignment(
            self.service_principal_id,
            resource_id,
            role_id,
            principal_id=self.service_principal_id,
        )
        grant = ConsentGrant(
            service_principal_id=self.service_principal_id,
            resource_id=resource_id,
            role_id=role_id,
        )
        self._granted[key] = grant
        logger.info("Granted app role %s on resource %s", role_id, resource_id)
        return grant

    def grant_blocks(self, blocks: Iterable[RequiredAccessBlock]) -> list[ConsentGrant]:
        """Grant every role of every block, in a stable order."""
        grants = []
        for block in blocks:
            for role_id in sorted(block.roles):
                grants.append(self.grant(block.resource_id, role_id))
        return grants

    @property
    def grants(self) -> list[ConsentGrant]:
        return list(self._granted.values())
