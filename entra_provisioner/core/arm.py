"""Azure Resource Manager client (resource-management extension)."""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict

from .graph.client import GraphClient
from .graph.exceptions import RoleDefinitionNotFoundError

logger = logging.getLogger(__name__)

ARM_BASE_URL = "https://management.azure.com"
ELEVATE_API_VERSION = "2016-07-01"
AUTHZ_API_VERSION = "2022-04-01"

ROOT_SCOPE = "/"
IDENTITY_PROVIDER_SCOPE = "/providers/Microsoft.aadiam"
READER_ROLE = "Reader"


def _scope_prefix(scope: str) -> str:
    return "" if scope == ROOT_SCOPE else scope.rstrip("/")


class ResourceManagementClient:
    """Role assignment operations on the Azure management plane."""

    def __init__(self, client: GraphClient):
        """Initialize resource management client.

        Args:
            client: HTTP client rooted at the Resource Manager base URL
        """
        self.client = client

    def elevate_access_to_root(self) -> None:
        """Grant the acting user User Access Administrator at the root scope."""
        self.client.post(
            "/providers/Microsoft.Authorization/elevateAccess",
            params={"api-version": ELEVATE_API_VERSION},
        )
        logger.info("Elevated acting session to root management scope")

    def get_role_definition_id(self, scope: str, role_name: str) -> str:
        """Resolve a built-in role name to its fully qualified definition id.

        Raises:
            RoleDefinitionNotFoundError: If no role with this name is visible at ``scope``
        """
        resp = self.client.get(
            f"{_scope_prefix(scope)}/providers/Microsoft.Authorization/roleDefinitions",
            params={"api-version": AUTHZ_API_VERSION, "$filter": f"roleName eq '{role_name}'"},
        )
        definitions = (resp.json() or {}).get("value") or []
        if not definitions:
            raise RoleDefinitionNotFoundError(role_name, scope)
        return definitions[0]["id"]

    def create_role_assignment(self, principal_id: str, scope: str, role_name: str) -> Dict[str, Any]:
        """Assign ``role_name`` at ``scope`` to a service principal."""
        role_definition_id = self.get_role_definition_id(scope, role_name)
        assignment_id = str(uuid.uuid4())
        payload = {
            "properties": {
                "roleDefinitionId": role_definition_id,
                "principalId": principal_id,
                "principalType": "ServicePrincipal",
            }
        }
        resp = self.client.put(
            f"{_scope_prefix(scope)}/providers/Microsoft.Authorization/roleAssignments/{assignment_id}",
            json=payload,
            params={"api-version": AUTHZ_API_VERSION},
        )
        logger.info("Assigned '%s' at '%s' to %s", role_name, scope, principal_id)
        return resp.json() or {}
