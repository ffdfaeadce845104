"""Authentication handlers for GraphQL clients.

Every handler is an `httpx.Auth`, so any httpx auth (including
`httpx.BasicAuth` or a custom flow) can be passed to `GraphQLClient`.
"""

from typing import Dict, Generator

import httpx


class HeaderAuth(httpx.Auth):
    """Custom headers authentication.

    Args:
        headers: Dictionary of headers to set on every request

    Example:
        auth = HeaderAuth({
            "X-API-Key": "key123",
            "X-Tenant-ID": "tenant456",
        })
    """

    def __init__(self, headers: Dict[str, str]):
        self._headers = dict(headers)

    def get_headers(self) -> Dict[str, str]:
        """Return headers to include in requests."""
        return self._headers.copy()

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers.update(self.get_headers())
        yield request


class ApiKeyAuth(HeaderAuth):
    """API key authentication via a custom header.

    Example:
        auth = ApiKeyAuth("my-secret-key")
        auth = ApiKeyAuth("my-key", header_name="Authorization")
    """

    def __init__(self, api_key: str, header_name: str = "x-api-key"):
        self.api_key = api_key
        self.header_name = header_name
        super().__init__({header_name: api_key})


class BearerAuth(HeaderAuth):
    """Bearer token authentication."""

    def __init__(self, token: str):
        self.token = token
        super().__init__({"Authorization": f"Bearer {token}"})
