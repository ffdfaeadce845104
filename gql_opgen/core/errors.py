"""Exceptions raised while generating bindings and executing operations.

None of the decode-time errors subclass ValueError: pydantic only wraps
ValueError/AssertionError raised inside validators, so these escape model
validation unchanged and reach the caller as-is.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class GqlOpgenError(Exception):
    """Base exception for all gql-opgen errors."""


class ValidationError(GqlOpgenError):
    """An operation does not match the schema it is generated against."""

    def __init__(self, message: str, operation: str | None = None):
        self.message = message
        self.operation = operation
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{message}")


class DecodeError(GqlOpgenError):
    """A wire value could not be decoded into a generated type."""


class MissingDiscriminator(DecodeError):
    """A polymorphic value arrived without its __typename."""

    def __init__(self, abstract_type: str):
        self.abstract_type = abstract_type
        super().__init__(
            f"response for {abstract_type} is missing the __typename discriminator"
        )


class UnknownVariant(DecodeError):
    """A polymorphic value named a type outside the possible-types set."""

    def __init__(self, abstract_type: str, typename: Any, possible_types: list[str]):
        self.abstract_type = abstract_type
        self.typename = typename
        self.possible_types = possible_types
        super().__init__(
            f"unexpected concrete type {typename!r} for {abstract_type} "
            f"(expected one of: {', '.join(possible_types)})"
        )


class TransportError(GqlOpgenError):
    """The HTTP exchange failed or the server answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class UnsupportedOperation(GqlOpgenError):
    """The requested operation cannot be sent with the configured method."""


class RequestCancelled(GqlOpgenError):
    """The caller's cancellation signal fired before the request completed."""


class GraphQLErrorEntry(BaseModel):
    """One entry of the `errors` list of a GraphQL response."""

    model_config = ConfigDict(extra="allow")

    message: str
    locations: list[dict[str, int]] | None = None
    path: list[str | int] | None = None
    extensions: dict[str, Any] | None = None

    def __str__(self) -> str:
        if self.path:
            return f"{'.'.join(str(p) for p in self.path)}: {self.message}"
        return self.message


class GraphQLErrorList(GqlOpgenError):
    """Errors reported by the server.

    Raised even when partial `data` came back with the errors; the decoded
    data is available on `response.data`.
    """

    def __init__(self, errors: list[GraphQLErrorEntry], response: Any = None):
        self.errors = errors
        self.response = response
        messages = "; ".join(str(e) for e in errors)
        super().__init__(f"GraphQL errors: {messages}")

    @property
    def data(self) -> Any:
        return self.response.data if self.response is not None else None
