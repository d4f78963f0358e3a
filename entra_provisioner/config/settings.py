"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"
AUTH_MODES = ("device_code", "client_secret")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _number(var_name: str, default: float, *, minimum: float = 0) -> float:
    raw = os.environ.get(var_name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be a number, got '{raw}'.")
    if value < minimum:
        raise RuntimeError(f"Environment variable {var_name} must be >= {minimum:g}, got {value:g}.")
    return value


@dataclass
class AppConfig:
    """Provisioner configuration container."""
    # Operator sign-in
    tenant_id: str = "organizations"
    client_id: str = DEFAULT_CLIENT_ID
    client_secret: str = ""
    auth_mode: str = "device_code"

    # Endpoints
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    arm_base_url: str = "https://management.azure.com"
    exchange_base_url: str = "https://outlook.office365.com"
    request_timeout: int = 30

    # Run behaviour
    propagation_delay_seconds: float = 30.0
    secret_validity_months: int = 6
    secret_display_name: str = "provisioned-by-entra-provisioner"

    @property
    def client_secret_resolved(self) -> str:
        """Get the operator client secret with smart fallback.

        Priority:
        1. Configured value in client_secret
        2. Docker secrets: /run/secrets/provisioner_client_secret
        3. Environment variable: PROVISIONER_CLIENT_SECRET

        Raises:
            ValueError: If no secret is available
        """
        if self.client_secret:
            return self.client_secret

        secret = _load_secret_from_file("provisioner_client_secret", "PROVISIONER_CLIENT_SECRET")
        if secret:
            return secret

        raise ValueError(
            "PROVISIONER_CLIENT_SECRET not found. "
            "Provide it via Docker secrets or environment variable, or use PROVISIONER_AUTH_MODE=device_code."
        )


def load_settings() -> AppConfig:
    """Load provisioner settings from environment and /run/secrets."""
    auth_mode = os.environ.get("PROVISIONER_AUTH_MODE", "device_code").strip().lower()
    if auth_mode not in AUTH_MODES:
        raise RuntimeError(f"PROVISIONER_AUTH_MODE must be one of {', '.join(AUTH_MODES)}, got '{auth_mode}'.")

    client_secret = _load_secret_from_file("provisioner_client_secret", "PROVISIONER_CLIENT_SECRET") or ""

    config = AppConfig(
        tenant_id=os.environ.get("AZURE_TENANT_ID", "organizations").strip() or "organizations",
        client_id=os.environ.get("PROVISIONER_CLIENT_ID", DEFAULT_CLIENT_ID).strip() or DEFAULT_CLIENT_ID,
        client_secret=client_secret,
        auth_mode=auth_mode,
        graph_base_url=os.environ.get("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0").rstrip("/"),
        arm_base_url=os.environ.get("ARM_BASE_URL", "https://management.azure.com").rstrip("/"),
        exchange_base_url=os.environ.get("EXCHANGE_BASE_URL", "https://outlook.office365.com").rstrip("/"),
        request_timeout=int(_number("REQUEST_TIMEOUT", 30, minimum=1)),
        propagation_delay_seconds=_number("PROPAGATION_DELAY_SECONDS", 30.0),
        secret_validity_months=int(_number("SECRET_VALIDITY_MONTHS", 6, minimum=1)),
        secret_display_name=os.environ.get("SECRET_DISPLAY_NAME", "provisioned-by-entra-provisioner"),
    )

    if config.auth_mode == "client_secret" and config.tenant_id == "organizations":
        raise RuntimeError("AZURE_TENANT_ID is required when PROVISIONER_AUTH_MODE=client_secret.")

    print(f"[settings] tenant={config.tenant_id}; auth_mode={config.auth_mode}; client_id={config.client_id}")
    return config
