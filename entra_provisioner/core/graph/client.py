"""Low-level HTTP client for Microsoft cloud control-plane APIs.

Handles bearer authentication, error translation and OData paging. The same
client type talks to Microsoft Graph, Azure Resource Manager and the Exchange
Online admin API; only the base URL and the token provider differ.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from .exceptions import GraphAPIError

REQUEST_TIMEOUT = 30
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str]


class GraphClient:
    """HTTP client with token injection and centralized error handling.

    Features:
    - Bearer token fetched from a provider on every call (the provider caches)
    - ``GraphAPIError`` for any HTTP status >= 400 or transport failure
    - ``@odata.nextLink`` paging for collection reads

    Usage:
        client = GraphClient(token_provider=session.graph_token)
        orgs = client.get_collection("/organization")
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        timeout: int = REQUEST_TIMEOUT,
        http: Optional[requests.Session] = None,
    ):
        """Initialize client.

        Args:
            token_provider: Callable returning a bearer token for this API
            base_url: API root (defaults to Microsoft Graph v1.0)
            timeout: Per-request timeout in seconds
            http: Optional requests session (shared connection pool)
        """
        self.base_url = (base_url or GRAPH_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self._http = http or requests.Session()

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("POST", path, json=json, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("PATCH", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("PUT", path, json=json, **kwargs)

    def get_collection(self, path: str, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        """Read every page of an OData collection.

        Args:
            path: Collection path (e.g., "/directoryRoles")
            params: Query parameters for the first page only

        Returns:
            Concatenated ``value`` arrays of all pages
        """
        items: List[Dict[str, Any]] = []
        url: Optional[str] = path
        while url:
            data = self.get(url, params=params).json() or {}
            items.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
            # nextLink already embeds the query string
            params = None
        return items

    def _url(self, path: str) -> str:
        if path.startswith("https://") or path.startswith("http://"):
            return path
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self._url(path)
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._token_provider()}"
        logger.debug("%s %s", method, url)
        try:
            resp = self._http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GraphAPIError(0, str(e), url) from e
        self._handle_error(resp)
        return resp

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            GraphAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            logger.error("API error %s on %s: %s", resp.status_code, resp.url, resp.text)
            raise GraphAPIError(resp.status_code, resp.text, resp.url)
