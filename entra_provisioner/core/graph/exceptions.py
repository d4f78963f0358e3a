"""Microsoft Graph / Azure control-plane transport exceptions."""


class GraphError(Exception):
    """Base exception for all remote directory operations."""
    pass


class GraphAPIError(GraphError):
    """HTTP error from Microsoft Graph, Azure Resource Manager or Exchange.

    Attributes:
        status_code: HTTP status code (0 when the request never completed)
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")

    @property
    def is_auth_error(self) -> bool:
        """True when the token itself was rejected.

        403 is not included: it means the signed-in principal lacks a role
        for this one call, not that the session is unusable.
        """
        return self.status_code == 401


class ServicePrincipalNotFoundError(GraphError):
    """No service principal matches the requested appId in this tenant."""
    pass


class RoleDefinitionNotFoundError(GraphError):
    """No role definition with the requested name is visible at a scope."""

    def __init__(self, role_name: str, scope: str):
        self.role_name = role_name
        self.scope = scope
        super().__init__(f"Role definition '{role_name}' not found at scope '{scope}'")
