"""Authenticated control-plane clients shared by every stage of a run."""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

import requests

from .arm import ResourceManagementClient
from .exceptions import AuthenticationFailureError
from .exchange import ExchangeOnlineClient
from .graph.applications import ApplicationService
from .graph.client import GraphClient
from .graph.directory import DirectoryService

if TYPE_CHECKING:
    from ..config.settings import AppConfig


@dataclass
class ControlPlane:
    """Clients established once at connect time and reused by later stages."""

    directory: DirectoryService
    applications: ApplicationService
    acting_principal_id: str
    exchange: ExchangeOnlineClient
    resource_management: ResourceManagementClient


def connect_control_plane(config: "AppConfig") -> ControlPlane:
    """Sign the operator in and build the Graph, Exchange and ARM clients.

    Raises:
        AuthenticationFailureError: If no session can be established
    """
    # msal and jwt are only guaranteed importable once the dependency check ran
    from .graph.auth import OperatorSession

    if config.auth_mode == "client_secret":
        session = OperatorSession.client_secret(config.tenant_id, config.client_id, config.client_secret_resolved)
    elif config.auth_mode == "device_code":
        session = OperatorSession.device_code(config.tenant_id, config.client_id)
    else:
        raise AuthenticationFailureError(f"Unsupported auth mode '{config.auth_mode}'")

    http = requests.Session()
    graph = GraphClient(session.graph_token, base_url=config.graph_base_url, timeout=config.request_timeout, http=http)
    arm = GraphClient(session.arm_token, base_url=config.arm_base_url, timeout=config.request_timeout, http=http)
    exo = GraphClient(session.exchange_token, base_url=config.exchange_base_url, timeout=config.request_timeout, http=http)

    return ControlPlane(
        directory=DirectoryService(graph),
        applications=ApplicationService(graph),
        acting_principal_id=session.principal_id,
        exchange=ExchangeOnlineClient(exo),
        resource_management=ResourceManagementClient(arm),
    )
