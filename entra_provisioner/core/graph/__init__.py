"""Microsoft Graph client library.

Architecture:
- client.py: HTTP client with token injection, error handling and paging
- auth.py: MSAL operator session (device code or client credentials)
- directory.py: Organization, directory role and membership reads
- applications.py: App registrations, service principals, grants, secrets
- exceptions.py: Typed transport exceptions

``auth`` is not imported here so the client library stays importable before
the dependency check has confirmed that ``msal`` and ``jwt`` are present.

Usage:
    from entra_provisioner.core.graph import GraphClient, ApplicationService

    client = GraphClient(token_provider=session.graph_token)
    apps = ApplicationService(client)
    app = apps.create_application("Maester")
"""
from .client import GraphClient, REQUEST_TIMEOUT, GRAPH_BASE_URL
from .exceptions import (
    GraphError,
    GraphAPIError,
    RoleDefinitionNotFoundError,
    ServicePrincipalNotFoundError,
)
from .directory import DirectoryService, initial_domain
from .applications import ApplicationService

__all__ = [
    "GraphClient",
    "REQUEST_TIMEOUT",
    "GRAPH_BASE_URL",
    "GraphError",
    "GraphAPIError",
    "ServicePrincipalNotFoundError",
    "RoleDefinitionNotFoundError",
    "DirectoryService",
    "initial_domain",
    "ApplicationService",
]
