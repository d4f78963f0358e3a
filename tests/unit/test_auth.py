"""Tests for operator sign-in (MSAL) and acting principal resolution."""
from unittest.mock import MagicMock, patch

import jwt
import pytest

from entra_provisioner.core.exceptions import AuthenticationFailureError
from entra_provisioner.core.graph import auth
from entra_provisioner.core.graph.auth import OperatorSession


def make_token(**claims):
    return jwt.encode(claims, "not-a-real-signing-key-but-long-enough-for-hs256", algorithm="HS256")


def test_client_secret_session_uses_client_credentials():
    app = MagicMock()
    app.acquire_token_for_client.return_value = {"access_token": make_token(oid="sp-oid")}
    session = OperatorSession(app, interactive=False)

    assert session.principal_id == "sp-oid"
    app.acquire_token_for_client.assert_called_with(scopes=["https://graph.microsoft.com/.default"])


def test_arm_and_exchange_tokens_use_their_own_scope():
    app = MagicMock()
    app.acquire_token_for_client.return_value = {"access_token": "t"}
    session = OperatorSession(app, interactive=False)

    session.arm_token()
    session.exchange_token()

    scopes = [c.kwargs["scopes"] for c in app.acquire_token_for_client.call_args_list]
    assert scopes == [["https://management.azure.com/.default"], ["https://outlook.office365.com/.default"]]


def test_device_code_flow_prompts_once_then_uses_cache():
    app = MagicMock()
    app.get_accounts.side_effect = [[], [{"username": "admin@contoso.com"}]]
    app.initiate_device_flow.return_value = {"user_code": "ABC", "message": "Go to https://microsoft.com/devicelogin"}
    app.acquire_token_by_device_flow.return_value = {"access_token": make_token(oid="user-oid")}
    app.acquire_token_silent.return_value = {"access_token": "arm-token"}
    prompts = []
    session = OperatorSession(app, interactive=True, prompt=prompts.append)

    assert session.principal_id == "user-oid"
    assert session.arm_token() == "arm-token"

    assert len(prompts) == 1
    app.acquire_token_silent.assert_called_once_with(
        auth.ARM_DELEGATED_SCOPES, account={"username": "admin@contoso.com"}
    )


def test_device_flow_start_failure_raises():
    app = MagicMock()
    app.get_accounts.return_value = []
    app.initiate_device_flow.return_value = {"error": "invalid_client", "error_description": "bad client"}
    session = OperatorSession(app, interactive=True, prompt=lambda flow: None)

    with pytest.raises(AuthenticationFailureError, match="bad client"):
        session.graph_token()


def test_token_error_raises_authentication_failure():
    app = MagicMock()
    app.acquire_token_for_client.return_value = {"error": "invalid_client", "error_description": "AADSTS7000215"}
    session = OperatorSession(app, interactive=False)

    with pytest.raises(AuthenticationFailureError, match="AADSTS7000215"):
        session.graph_token()


def test_token_without_oid_is_rejected():
    app = MagicMock()
    app.acquire_token_for_client.return_value = {"access_token": make_token(sub="x")}

    with pytest.raises(AuthenticationFailureError):
        _ = OperatorSession(app, interactive=False).principal_id


def test_factories_build_msal_applications():
    with patch.object(auth.msal, "PublicClientApplication") as public, \
         patch.object(auth.msal, "ConfidentialClientApplication") as confidential:
        OperatorSession.device_code("tenant-1")
        OperatorSession.client_secret("tenant-1", "client-1", "secret-1")

    public.assert_called_once_with(
        auth.DEFAULT_PUBLIC_CLIENT_ID, authority="https://login.microsoftonline.com/tenant-1"
    )
    confidential.assert_called_once_with(
        "client-1", authority="https://login.microsoftonline.com/tenant-1", client_credential="secret-1"
    )
