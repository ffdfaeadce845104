"""GraphQL client for executing operations against a GraphQL endpoint.

Handles HTTP communication (POST, GET and multipart uploads), cancellation,
error handling, and response decoding into generated models.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
import pydantic
from pydantic import BaseModel

from .errors import (
    DecodeError,
    GraphQLErrorEntry,
    GraphQLErrorList,
    RequestCancelled,
    TransportError,
    UnsupportedOperation,
)
from .request import Request, Response, serialize_variables
from .upload import pack

logger = logging.getLogger(__name__)

METHODS = ("POST", "GET")


@dataclass
class TransportConfig:
    """Everything needed to build a GraphQLClient.

    Attributes:
        endpoint: GraphQL endpoint URL
        method: "POST" (default) or "GET"
        headers: Extra headers sent with every request
        auth: Any httpx auth, e.g. BearerAuth(token)
        timeout: Request timeout in seconds
        transport: Custom httpx transport (e.g. httpx.MockTransport in tests)
    """
    endpoint: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    auth: httpx.Auth | None = None
    timeout: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None


class _WireResponse(BaseModel):
    data: Any = None
    errors: list[GraphQLErrorEntry] | None = None
    extensions: dict[str, Any] | None = None


class GraphQLClient:
    """Sends GraphQL requests and decodes the responses.

    Examples:
        async with GraphQLClient(url, auth=BearerAuth(token)) as client:
            user = await get_user(client, id="1")

        client = GraphQLClient(url, method="GET")
        response = await client.execute(Request(query="query Q { me { id } }"))

    Queries can go over GET; mutations cannot. Requests flagged with
    `upload_files` are sent as multipart POSTs (ignored under GET).
    """

    def __init__(
        self,
        endpoint: str,
        *,
        method: str = "POST",
        auth: httpx.Auth | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            endpoint: GraphQL endpoint URL
            method: HTTP method, "POST" or "GET"
            auth: Authentication handler (any httpx.Auth)
            headers: Extra headers sent with every request
            timeout: Request timeout in seconds
            http_client: Existing httpx client to use; it is never closed here
            transport: httpx transport for the client created on first use
        """
        method = method.upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported HTTP method {method!r}; use POST or GET")
        self.endpoint = endpoint
        self.method = method
        self.auth = auth
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._transport = transport
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_config(cls, config: TransportConfig) -> "GraphQLClient":
        return cls(
            config.endpoint,
            method=config.method,
            auth=config.auth,
            headers=config.headers,
            timeout=config.timeout,
            transport=config.transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client, unless it was supplied by the caller."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GraphQLClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def execute(
        self,
        request: Request,
        response: Response | None = None,
        *,
        response_model: type[BaseModel] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Response:
        """Execute a request and fill in the response.

        Args:
            request: The GraphQL request
            response: Response to fill in place; a new one is made if omitted
            response_model: Model the `data` object is validated into
            cancel: Event that aborts the request when set

        Returns:
            The filled-in response

        Raises:
            UnsupportedOperation: For a mutation over GET, before any I/O
            RequestCancelled: If `cancel` is set before the response arrives
            TransportError: On network failure, non-2xx status or non-JSON body
            DecodeError: If `data` does not fit `response_model`
            GraphQLErrorList: If the server reported errors; any data that
                came with them is still stored on `response`
        """
        if response is None:
            response = Response()
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("request cancelled before it was sent")

        client = await self._get_client()
        http_request = self._build_request(client, request)
        logger.debug(
            "Sending %s %s (operation=%s)",
            http_request.method,
            self.endpoint,
            request.operation_name,
        )
        status_code, body = await self._send(client, http_request, cancel)
        self._decode(status_code, body, response, response_model)
        return response

    def _build_request(self, client: httpx.AsyncClient, request: Request) -> httpx.Request:
        headers = {"Accept": "application/json", **self.headers}

        if self.method == "GET":
            if request.is_mutation:
                raise UnsupportedOperation("mutations cannot be sent over GET")
            params = {"query": request.query}
            if request.operation_name:
                params["operationName"] = request.operation_name
            variables = serialize_variables(request.variables)
            if variables is not None:
                params["variables"] = json.dumps(variables)
            headers["Content-Type"] = "application/json"
            return client.build_request("GET", self.endpoint, params=params, headers=headers)

        if request.upload_files:
            content, content_type = pack(request).encode()
            headers["Content-Type"] = content_type
            return client.build_request("POST", self.endpoint, content=content, headers=headers)

        return client.build_request("POST", self.endpoint, json=request.payload(), headers=headers)

    async def _send(
        self,
        client: httpx.AsyncClient,
        http_request: httpx.Request,
        cancel: asyncio.Event | None,
    ) -> tuple[int, bytes]:
        if cancel is None:
            return await self._round_trip(client, http_request)

        task = asyncio.ensure_future(self._round_trip(client, http_request))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()

        task.cancel()
        # Wait for the round trip to unwind so the response stream is closed
        await asyncio.gather(task, return_exceptions=True)
        logger.debug("Request to %s cancelled", self.endpoint)
        raise RequestCancelled("request cancelled while in flight")

    async def _round_trip(
        self, client: httpx.AsyncClient, http_request: httpx.Request
    ) -> tuple[int, bytes]:
        # Without an explicit auth the http client's own auth applies
        send_kwargs = {"auth": self.auth} if self.auth is not None else {}
        try:
            http_response = await client.send(http_request, stream=True, **send_kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"request to {self.endpoint} failed: {e}") from e

        try:
            body = await http_response.aread()
        except httpx.HTTPError as e:
            if not http_response.is_success:
                raise TransportError(
                    f"server returned error {http_response.status_code}: <unreadable: {e}>",
                    status_code=http_response.status_code,
                ) from e
            raise TransportError(
                f"failed to read response body: {e}",
                status_code=http_response.status_code,
            ) from e
        finally:
            await http_response.aclose()

        if not http_response.is_success:
            text = body.decode("utf-8", errors="replace")
            raise TransportError(
                f"server returned error {http_response.status_code}: {text}",
                status_code=http_response.status_code,
                body=text,
            )
        return http_response.status_code, body

    def _decode(
        self,
        status_code: int,
        body: bytes,
        response: Response,
        response_model: type[BaseModel] | None,
    ):
        try:
            wire = _WireResponse.model_validate_json(body)
        except pydantic.ValidationError as e:
            text = body.decode("utf-8", errors="replace")
            raise TransportError(
                f"response is not a GraphQL JSON object: {text[:200]}",
                status_code=status_code,
                body=text,
            ) from e

        response.extensions = wire.extensions
        response.errors = wire.errors or []

        decode_error: Exception | None = None
        if response_model is not None and wire.data is not None:
            try:
                response.data = response_model.model_validate(wire.data)
            except pydantic.ValidationError as e:
                decode_error = DecodeError(
                    f"response does not match {response_model.__name__}: {e}"
                )
                decode_error.__cause__ = e
            except DecodeError as e:
                decode_error = e
        else:
            response.data = wire.data

        if response.errors:
            logger.debug("Server reported %d error(s)", len(response.errors))
            raise GraphQLErrorList(response.errors, response) from decode_error
        if decode_error is not None:
            raise decode_error
