"""Operator authentication against Microsoft Entra ID.

One ``OperatorSession`` is created per run. It acquires tokens for each
control plane on demand (Graph, Resource Manager, Exchange Online) through a
single MSAL application, so the operator signs in once.
"""
from __future__ import annotations
import logging
import sys
from typing import Any, Callable, Dict, Optional

import jwt
import msal

from ..exceptions import AuthenticationFailureError

logger = logging.getLogger(__name__)

# "Microsoft Graph Command Line Tools" public client, pre-consented in every tenant
DEFAULT_PUBLIC_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"
AUTHORITY_HOST = "https://login.microsoftonline.com"

GRAPH_DELEGATED_SCOPES = [
    "https://graph.microsoft.com/Application.ReadWrite.All",
    "https://graph.microsoft.com/AppRoleAssignment.ReadWrite.All",
    "https://graph.microsoft.com/Directory.Read.All",
    "https://graph.microsoft.com/RoleManagement.Read.Directory",
]
ARM_DELEGATED_SCOPES = ["https://management.azure.com/user_impersonation"]
EXCHANGE_DELEGATED_SCOPES = ["https://outlook.office365.com/.default"]


def _default_prompt(flow: Dict[str, Any]) -> None:
    print(flow.get("message", "Complete the device code sign-in to continue."), file=sys.stderr)


class OperatorSession:
    """Token source for the acting principal.

    Usage:
        session = OperatorSession.device_code(tenant_id)
        client = GraphClient(token_provider=session.graph_token)
        print(session.principal_id)
    """

    def __init__(self, app: Any, *, interactive: bool, prompt: Optional[Callable[[Dict[str, Any]], None]] = None):
        self._app = app
        self._interactive = interactive
        self._prompt = prompt or _default_prompt

    @classmethod
    def device_code(cls, tenant_id: str, client_id: str = DEFAULT_PUBLIC_CLIENT_ID, **kwargs) -> "OperatorSession":
        """Interactive operator sign-in via the device code flow."""
        app = msal.PublicClientApplication(client_id, authority=f"{AUTHORITY_HOST}/{tenant_id}")
        return cls(app, interactive=True, **kwargs)

    @classmethod
    def client_secret(cls, tenant_id: str, client_id: str, secret: str) -> "OperatorSession":
        """Non-interactive sign-in as an existing automation application."""
        app = msal.ConfidentialClientApplication(
            client_id,
            authority=f"{AUTHORITY_HOST}/{tenant_id}",
            client_credential=secret,
        )
        return cls(app, interactive=False)

    def graph_token(self) -> str:
        return self._token(GRAPH_DELEGATED_SCOPES, "https://graph.microsoft.com/.default")

    def arm_token(self) -> str:
        return self._token(ARM_DELEGATED_SCOPES, "https://management.azure.com/.default")

    def exchange_token(self) -> str:
        return self._token(EXCHANGE_DELEGATED_SCOPES, "https://outlook.office365.com/.default")

    @property
    def principal_id(self) -> str:
        """Object id of the acting principal (``oid`` claim of the Graph token)."""
        claims = jwt.decode(self.graph_token(), options={"verify_signature": False})
        oid = claims.get("oid")
        if not oid:
            raise AuthenticationFailureError("Graph access token carries no 'oid' claim")
        return oid

    def _token(self, delegated_scopes: list[str], app_scope: str) -> str:
        result: Optional[Dict[str, Any]] = None
        if self._interactive:
            accounts = self._app.get_accounts()
            if accounts:
                result = self._app.acquire_token_silent(delegated_scopes, account=accounts[0])
            if not result:
                flow = self._app.initiate_device_flow(scopes=delegated_scopes)
                if "user_code" not in flow:
                    raise AuthenticationFailureError(f"Failed to start device code flow: {flow.get('error_description', flow)}")
                self._prompt(flow)
                result = self._app.acquire_token_by_device_flow(flow)
        else:
            result = self._app.acquire_token_for_client(scopes=[app_scope])

        if not result or "access_token" not in result:
            detail = (result or {}).get("error_description") or (result or {}).get("error") or "no token returned"
            raise AuthenticationFailureError(f"Failed to acquire token for {app_scope}: {detail}")
        logger.debug("Acquired token for %s", app_scope)
        return result["access_token"]
