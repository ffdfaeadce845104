"""Request and response envelopes exchanged with the transport."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .errors import GraphQLErrorEntry
from .models import InputModel
from .upload import Upload


@dataclass
class Request:
    """One GraphQL request.

    Args:
        query: The literal query text, e.g. `query GetUser { user { id } }`
        operation_name: Name of the operation to run
        variables: Variables model, plain mapping, or None
        upload_files: Send as a multipart upload (ignored for GET)
    """
    query: str
    operation_name: str | None = None
    variables: Any = None
    upload_files: bool = False

    @property
    def is_mutation(self) -> bool:
        return self.query.lstrip().startswith("mutation")

    def payload(self) -> dict[str, Any]:
        """The JSON envelope: query, variables (when present) and operationName."""
        payload: dict[str, Any] = {"query": self.query}
        variables = serialize_variables(self.variables)
        if variables is not None:
            payload["variables"] = variables
        payload["operationName"] = self.operation_name
        return payload


@dataclass
class Response:
    """A GraphQL response, filled in place by the client.

    `data` holds the decoded response model when one was requested, else
    the raw JSON value.
    """
    data: Any = None
    extensions: dict[str, Any] | None = None
    errors: list[GraphQLErrorEntry] = field(default_factory=list)


def serialize_variables(variables: Any, mode: str = "json") -> Any:
    """Serialize variables for the GraphQL request.

    Pydantic models are dumped by alias with unset fields left out, so an
    optional input the caller never touched is absent rather than null.
    In "json" mode uploads become null placeholders; in "python" mode they
    are kept so the upload packer can find them.
    """
    if variables is None:
        return None
    if isinstance(variables, Upload):
        return None if mode == "json" else variables
    if isinstance(variables, InputModel):
        return variables.serialize(mode)
    if isinstance(variables, BaseModel):
        return variables.model_dump(mode=mode, by_alias=True, exclude_unset=True)
    if isinstance(variables, Mapping):
        return {key: serialize_variables(value, mode) for key, value in variables.items()}
    if isinstance(variables, (list, tuple)):
        return [serialize_variables(value, mode) for value in variables]
    if mode == "json":
        return to_jsonable_python(variables)
    return variables
