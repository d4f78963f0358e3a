"""Permission catalogue and name → app role resolution.

Permission names are resolved against the ``appRoles`` a resource service
principal publishes in the tenant. Role ids are looked up live instead of
being hardcoded so the same catalogue works in every cloud.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

APPLICATION_PRINCIPAL_KIND = "Application"

MICROSOFT_GRAPH_APP_ID = "00000003-0000-0000-c000-000000000000"
EXCHANGE_ONLINE_APP_ID = "00000002-0000-0ff1-ce00-000000000000"

GRAPH_PERMISSIONS = (
    "DeviceManagementConfiguration.Read.All",
    "DeviceManagementManagedDevices.Read.All",
    "Directory.Read.All",
    "DirectoryRecommendations.Read.All",
    "IdentityRiskEvent.Read.All",
    "Policy.Read.All",
    "Policy.Read.ConditionalAccess",
    "PrivilegedAccess.Read.AzureAD",
    "Reports.Read.All",
    "RoleEligibilitySchedule.Read.Directory",
    "RoleManagement.Read.All",
    "SharePointTenantSettings.Read.All",
    "UserAuthenticationMethod.Read.All",
)

EXCHANGE_PERMISSIONS = ("Exchange.ManageAsApp",)


@dataclass(frozen=True)
class RoleDefinition:
    id: str
    name: str
    allowed_principal_kinds: frozenset = frozenset()

    @property
    def is_application_assignable(self) -> bool:
        return APPLICATION_PRINCIPAL_KIND in self.allowed_principal_kinds

    @classmethod
    def from_graph(cls, app_role: Mapping[str, Any]) -> "RoleDefinition":
        """Build from a Graph ``appRole`` representation."""
        return cls(
            id=app_role["id"],
            name=app_role.get("value") or "",
            allowed_principal_kinds=frozenset(app_role.get("allowedMemberTypes") or ()),
        )


@dataclass(frozen=True)
class ResourcePrincipal:
    """A downstream resource whose app roles can be granted.

    Attributes:
        id: Service principal object id (the ``resourceId`` of a grant)
        resource_app_id: Application id (the ``resourceAppId`` of a block)
        catalogue: Published app roles, in the order the API returned them
    """

    id: str
    resource_app_id: str
    catalogue: tuple = ()
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name: dict[str, RoleDefinition] = {}
        for definition in self.catalogue:
            # An application-assignable definition wins over a delegated twin
            current = by_name.get(definition.name)
            if current is None or (not current.is_application_assignable and definition.is_application_assignable):
                by_name[definition.name] = definition
        object.__setattr__(self, "_by_name", by_name)

    def lookup(self, name: str) -> Optional[RoleDefinition]:
        return self._by_name.get(name)

    @classmethod
    def from_graph(cls, service_principal: Mapping[str, Any]) -> "ResourcePrincipal":
        """Build from a Graph ``servicePrincipal`` representation."""
        return cls(
            id=service_principal["id"],
            resource_app_id=service_principal["appId"],
            catalogue=tuple(RoleDefinition.from_graph(r) for r in service_principal.get("appRoles") or ()),
        )


@dataclass(frozen=True)
class RequiredAccessBlock:
    """Roles of one resource the application declares it needs."""

    resource_app_id: str
    roles: frozenset = frozenset()
    resource_id: str = ""

    def __bool__(self) -> bool:
        return bool(self.roles)

    def to_graph(self) -> dict[str, Any]:
        """Serialize to a Graph ``requiredResourceAccess`` entry."""
        return {
            "resourceAppId": self.resource_app_id,
            "resourceAccess": [{"id": role_id, "type": "Role"} for role_id in sorted(self.roles)],
        }


def resolve_roles(resource: ResourcePrincipal, requested_names: Sequence[str]) -> RequiredAccessBlock:
    """Map permission names to application role ids of ``resource``.

    Matching is exact and case-sensitive. Names that are absent from the
    catalogue, or only exist as delegated scopes, are skipped with a warning.

    Args:
        resource: Resource principal with its role catalogue
        requested_names: Permission names, in request order

    Returns:
        Block holding every resolved role id (possibly empty)
    """
    resolved: set[str] = set()
    for name in requested_names:
        definition = resource.lookup(name)
        if definition is None or not definition.is_application_assignable:
            logger.warning(
                "Permission '%s' not published as an application role by resource %s; skipping",
                name,
                resource.resource_app_id,
            )
            continue
        resolved.add(definition.id)
    return RequiredAccessBlock(
        resource_app_id=resource.resource_app_id,
        roles=frozenset(resolved),
        resource_id=resource.id,
    )


def non_empty_blocks(blocks: Iterable[RequiredAccessBlock]) -> list[RequiredAccessBlock]:
    """Drop blocks that resolved zero roles."""
    return [block for block in blocks if block]
