"""Pytest shared fixtures: in-memory stand-ins for the remote control planes."""
import itertools
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from entra_provisioner.core.connection import ControlPlane
from entra_provisioner.core.dependencies import DependencyCheck
from entra_provisioner.core.exchange import ExchangeSession
from entra_provisioner.core.graph.exceptions import (
    GraphAPIError,
    RoleDefinitionNotFoundError,
    ServicePrincipalNotFoundError,
)
from entra_provisioner.core.permissions import (
    EXCHANGE_ONLINE_APP_ID,
    EXCHANGE_PERMISSIONS,
    GRAPH_PERMISSIONS,
    MICROSOFT_GRAPH_APP_ID,
)

ACTING_PRINCIPAL = "operator-oid"
TENANT_ID = "tenant-0001"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """Prevent unit tests from reaching live Microsoft endpoints."""
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    monkeypatch.setattr(requests.Session, "request", _refuse)


# ─────────────────────────────────────────────────────────────────────────────
# Catalogue builders
# ─────────────────────────────────────────────────────────────────────────────
def app_role(name, role_id=None, kinds=("Application",)):
    return {
        "id": role_id or f"role-{name}",
        "value": name,
        "allowedMemberTypes": list(kinds),
        "isEnabled": True,
    }


def graph_resource_sp():
    roles = [app_role(name) for name in GRAPH_PERMISSIONS]
    roles.append(app_role("User.Read.All"))
    roles.append(app_role("Mail.Send", kinds=("User",)))
    return {"id": "graph-sp", "appId": MICROSOFT_GRAPH_APP_ID, "appRoles": roles}


def exchange_resource_sp():
    roles = [app_role(name) for name in EXCHANGE_PERMISSIONS]
    roles.append(app_role("full_access_as_app"))
    return {"id": "exo-sp", "appId": EXCHANGE_ONLINE_APP_ID, "appRoles": roles}


def organization(domains=None):
    if domains is None:
        domains = [
            {"name": "contoso.com", "isInitial": False, "isDefault": True},
            {"name": "contoso.onmicrosoft.com", "isInitial": True, "isDefault": False},
        ]
    return {"id": TENANT_ID, "displayName": "Contoso", "verifiedDomains": domains}


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────
class FakeDirectory:
    def __init__(self, organizations=None, roles=None, members=None):
        self.organizations = [organization()] if organizations is None else organizations
        self.roles = roles if roles is not None else [
            {"id": "role-ga", "displayName": "Global Administrator"},
            {"id": "role-reader", "displayName": "Directory Readers"},
        ]
        # role id -> member list, or an exception instance to raise
        self.members = members if members is not None else {
            "role-ga": [{"id": ACTING_PRINCIPAL}],
            "role-reader": [],
        }
        self.member_lookups = []

    def list_organizations(self):
        return list(self.organizations)

    def list_directory_roles(self):
        return list(self.roles)

    def list_role_members(self, role_id):
        self.member_lookups.append(role_id)
        members = self.members.get(role_id, [])
        if isinstance(members, Exception):
            raise members
        return list(members)


class FakeApplications:
    def __init__(self, resources=None):
        self._ids = itertools.count(1)
        self.applications = {}
        self.service_principals = {}
        self.resources = resources if resources is not None else {
            MICROSOFT_GRAPH_APP_ID: graph_resource_sp(),
            EXCHANGE_ONLINE_APP_ID: exchange_resource_sp(),
        }
        self.read_back_override = None
        self.required_access_updates = []
        self.role_assignments = []
        self.secrets = []

    def create_application(self, display_name):
        n = next(self._ids)
        app = {"id": f"obj-{n}", "appId": f"client-{n}", "displayName": display_name}
        self.applications[app["id"]] = app
        return dict(app)

    def get_application(self, object_id):
        if self.read_back_override is not None:
            return self.read_back_override(object_id)
        app = self.applications.get(object_id)
        return dict(app) if app else None

    def create_service_principal(self, app_id):
        sp = {"id": f"sp-{app_id}", "appId": app_id}
        self.service_principals[sp["id"]] = sp
        return dict(sp)

    def get_service_principal_by_app_id(self, app_id):
        if app_id not in self.resources:
            raise ServicePrincipalNotFoundError(f"No service principal for appId '{app_id}'")
        return self.resources[app_id]

    def update_required_access(self, object_id, required_access):
        self.required_access_updates.append((object_id, list(required_access)))

    def create_app_role_assignment(self, service_principal_id, resource_id, role_id, principal_id):
        self.role_assignments.append((service_principal_id, resource_id, role_id, principal_id))
        return {"id": f"assignment-{len(self.role_assignments)}"}

    def create_application_secret(self, object_id, display_name, not_before, not_after):
        self.secrets.append((object_id, display_name, not_before, not_after))
        return f"secret-{len(self.secrets)}"


class FakeExchange:
    def __init__(self):
        self.sessions = []
        self.service_principal_ids = []

    def connect_app_only(self, app_id, organization, service_principal_id):
        self.sessions.append((app_id, organization))
        self.service_principal_ids.append(service_principal_id)
        return ExchangeSession(app_id, organization, identity=service_principal_id, registered=True)


class FakeResourceManagement:
    def __init__(self, fail_elevation=False, missing_roles=()):
        self.fail_elevation = fail_elevation
        self.missing_roles = set(missing_roles)
        self.elevated = False
        self.assignments = []

    def elevate_access_to_root(self):
        if self.fail_elevation:
            raise GraphAPIError(403, "AuthorizationFailed", "/providers/Microsoft.Authorization/elevateAccess")
        self.elevated = True

    def create_role_assignment(self, principal_id, scope, role_name):
        if (scope, role_name) in self.missing_roles:
            raise RoleDefinitionNotFoundError(role_name, scope)
        self.assignments.append((principal_id, scope, role_name))
        return {"principalId": principal_id, "scope": scope, "role": role_name}


class PresentModules(DependencyCheck):
    """Dependency check that finds and imports everything without touching sys.modules."""

    def __init__(self):
        super().__init__(find_spec=lambda name: object(), import_module=lambda name: object())


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def directory():
    return FakeDirectory()


@pytest.fixture()
def applications():
    return FakeApplications()


@pytest.fixture()
def exchange():
    return FakeExchange()


@pytest.fixture()
def resource_management():
    return FakeResourceManagement()


@pytest.fixture()
def control_plane(directory, applications, exchange, resource_management):
    return ControlPlane(
        directory=directory,
        applications=applications,
        acting_principal_id=ACTING_PRINCIPAL,
        exchange=exchange,
        resource_management=resource_management,
    )


@pytest.fixture()
def sleep():
    return RecordingSleep()
