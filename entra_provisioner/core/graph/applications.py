"""Application registration, service principal and credential operations."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .client import GraphClient
from .exceptions import GraphAPIError, ServicePrincipalNotFoundError


def _graph_timestamp(value: datetime) -> str:
    """Format a datetime the way Graph expects (UTC, ISO 8601, Z suffix)."""
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class ApplicationService:
    """Service for app registrations and their service principals."""

    def __init__(self, client: GraphClient):
        """Initialize application service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def create_application(self, display_name: str) -> Dict[str, Any]:
        """Create a single-tenant app registration.

        Not idempotent: Graph allows several applications with the same
        display name, so every call creates a new object.

        Returns:
            Application representation (``id`` = object id, ``appId`` = client id)
        """
        payload = {"displayName": display_name, "signInAudience": "AzureADMyOrg"}
        return self.client.post("/applications", json=payload).json()

    def get_application(self, object_id: str) -> Optional[Dict[str, Any]]:
        """Read an application by object id.

        Returns:
            Application representation or None when Graph answers 404
        """
        try:
            return self.client.get(f"/applications/{object_id}").json()
        except GraphAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def update_required_access(self, object_id: str, required_access: Sequence[Dict[str, Any]]) -> None:
        """Replace the ``requiredResourceAccess`` declaration of an application."""
        self.client.patch(
            f"/applications/{object_id}",
            json={"requiredResourceAccess": list(required_access)},
        )

    def create_service_principal(self, app_id: str) -> Dict[str, Any]:
        """Instantiate the tenant-local service principal of an application."""
        return self.client.post("/servicePrincipals", json={"appId": app_id}).json()

    def list_service_principals(self, odata_filter: str) -> List[Dict[str, Any]]:
        """Return service principals matching an OData ``$filter`` expression."""
        return self.client.get_collection("/servicePrincipals", params={"$filter": odata_filter})

    def get_service_principal_by_app_id(self, app_id: str) -> Dict[str, Any]:
        """Return the service principal (with its app roles) for an appId.

        Raises:
            ServicePrincipalNotFoundError: If the resource is not present in the tenant
        """
        matches = self.list_service_principals(f"appId eq '{app_id}'")
        if not matches:
            raise ServicePrincipalNotFoundError(f"No service principal for appId '{app_id}'")
        return matches[0]

    def create_app_role_assignment(
        self,
        service_principal_id: str,
        resource_id: str,
        role_id: str,
        principal_id: str,
    ) -> Dict[str, Any]:
        """Grant an application role of ``resource_id`` to ``principal_id``."""
        payload = {
            "principalId": principal_id,
            "resourceId": resource_id,
            "appRoleId": role_id,
        }
        return self.client.post(
            f"/servicePrincipals/{service_principal_id}/appRoleAssignments",
            json=payload,
        ).json()

    def create_application_secret(
        self,
        object_id: str,
        display_name: str,
        not_before: datetime,
        not_after: datetime,
    ) -> str:
        """Add a password credential to an application.

        Returns:
            The plaintext secret. Graph only returns it in this response.
        """
        payload = {
            "passwordCredential": {
                "displayName": display_name,
                "startDateTime": _graph_timestamp(not_before),
                "endDateTime": _graph_timestamp(not_after),
            }
        }
        resp = self.client.post(f"/applications/{object_id}/addPassword", json=payload)
        secret = (resp.json() or {}).get("secretText")
        if not secret:
            raise GraphAPIError(resp.status_code, "addPassword response carried no secretText", resp.url)
        return secret
