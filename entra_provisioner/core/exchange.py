"""Exchange Online admin API client (mail platform extension)."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .graph.client import GraphClient
from .graph.exceptions import GraphAPIError, ServicePrincipalNotFoundError

logger = logging.getLogger(__name__)

EXCHANGE_BASE_URL = "https://outlook.office365.com"
SYSTEM_MAILBOX = "SystemMailbox{bb558c35-97f1-4cb9-8ff7-d53741dc928c}"


@dataclass(frozen=True)
class ExchangeSession:
    """The provisioned application as Exchange Online sees it.

    Attributes:
        app_id: Client id of the provisioned application
        organization: Domain the session is anchored on
        identity: Exchange-side identity of the application's service principal
        registered: True when this run created the Exchange service principal
    """

    app_id: str
    organization: str
    identity: str
    registered: bool = False


class ExchangeOnlineClient:
    """Thin wrapper over the Exchange Online ``InvokeCommand`` endpoint."""

    def __init__(self, client: GraphClient):
        """Initialize Exchange client.

        Args:
            client: HTTP client rooted at the Exchange Online base URL
        """
        self.client = client

    def invoke(self, organization: str, cmdlet: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one admin cmdlet against ``organization`` and return the JSON body."""
        body = {"CmdletInput": {"CmdletName": cmdlet, "Parameters": parameters or {}}}
        resp = self.client.post(
            f"/adminapi/beta/{organization}/InvokeCommand",
            json=body,
            headers={"X-AnchorMailbox": f"UPN:{SYSTEM_MAILBOX}@{organization}"},
        )
        return resp.json() or {}

    def get_service_principal(self, organization: str, app_id: str) -> Optional[Dict[str, Any]]:
        """Return Exchange's service principal for ``app_id``, or None if it has none."""
        try:
            result = self.invoke(organization, "Get-ServicePrincipal", {"Identity": app_id})
        except GraphAPIError as e:
            if e.status_code == 404:
                return None
            raise
        matches = result.get("value") or []
        return matches[0] if matches else None

    def connect_app_only(self, app_id: str, organization: str, service_principal_id: str) -> ExchangeSession:
        """Bind the application ``app_id`` into Exchange Online for ``organization``.

        Exchange only honours app-only tokens for applications it has a
        service principal pointer for. The pointer is created from the Entra
        service principal when missing, then read back.

        Raises:
            ServicePrincipalNotFoundError: If Exchange still cannot see the application
            GraphAPIError: If the organization is unreachable or a cmdlet fails
        """
        existing = self.get_service_principal(organization, app_id)
        registered = False
        if existing is None:
            self.invoke(
                organization,
                "New-ServicePrincipal",
                {"AppId": app_id, "ObjectId": service_principal_id},
            )
            registered = True
            existing = self.get_service_principal(organization, app_id)
            if existing is None:
                raise ServicePrincipalNotFoundError(
                    f"Exchange Online in '{organization}' cannot see application {app_id}"
                )

        identity = existing.get("Identity") or existing.get("ObjectId") or service_principal_id
        logger.info("Exchange Online knows app %s in %s as %s", app_id, organization, identity)
        return ExchangeSession(app_id=app_id, organization=organization, identity=identity, registered=registered)
