"""Directory reads: tenant organization, directory roles and memberships."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .client import GraphClient


class DirectoryService:
    """Service for read-only directory lookups."""

    def __init__(self, client: GraphClient):
        """Initialize directory service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def list_organizations(self) -> List[Dict[str, Any]]:
        """Return the tenant organization records (normally exactly one)."""
        return self.client.get_collection("/organization")

    def list_directory_roles(self) -> List[Dict[str, Any]]:
        """Return every activated directory role (id, displayName, roleTemplateId)."""
        return self.client.get_collection("/directoryRoles")

    def list_role_members(self, role_id: str) -> List[Dict[str, Any]]:
        """Return the direct members of a directory role."""
        return self.client.get_collection(
            f"/directoryRoles/{role_id}/members",
            params={"$select": "id,displayName"},
        )


def initial_domain(organization: Dict[str, Any]) -> Optional[str]:
    """Pick the tenant's initial verified domain, else any verified domain.

    Args:
        organization: Graph organization representation

    Returns:
        Domain name or None when the tenant has no verified domain
    """
    domains = [d for d in organization.get("verifiedDomains") or [] if d.get("name")]
    for domain in domains:
        if domain.get("isInitial"):
            return domain["name"]
    if domains:
        return domains[0]["name"]
    return None
