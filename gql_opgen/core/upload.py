"""File uploads following the GraphQL multipart request convention.

Files are found by walking the variables graph, grouped by identical byte
content so each distinct file is uploaded once, and referenced from every
variable path that needs it through the `map` field.

Example:
    request = Request(
        query=UPLOAD_FILES_OPERATION,
        operation_name="UploadFiles",
        variables={"files": [Upload(b"a", "a.txt"), Upload(b"a", "copy.txt")]},
        upload_files=True,
    )
    body = pack(request)
    body.map  # {"0": ["variables.files.0", "variables.files.1"]}
"""

import json
import logging
import secrets
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, BinaryIO

from pydantic_core import core_schema

from .errors import TransportError

if TYPE_CHECKING:
    from .request import Request

logger = logging.getLogger(__name__)

# (prefix, content type) checked against the leading bytes
_SIGNATURES = [
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"OggS\x00", "application/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
]

_MARKUP = [
    (b"<!doctype html", "text/html; charset=utf-8"),
    (b"<html", "text/html; charset=utf-8"),
    (b"<?xml", "text/xml; charset=utf-8"),
]

# Control bytes that never occur in text
_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B} | set(range(0x0E, 0x1B)) | set(range(0x1C, 0x20))

SNIFF_LENGTH = 512


def sniff_content_type(content: bytes) -> str:
    """Guess a content type from the first bytes of a file."""
    head = content[:SNIFF_LENGTH]
    for prefix, content_type in _SIGNATURES:
        if head.startswith(prefix):
            return content_type
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    stripped = head.lstrip(b"\t\n\x0c\r ").lower()
    for prefix, content_type in _MARKUP:
        if stripped.startswith(prefix):
            return content_type
    if any(byte in _BINARY_BYTES for byte in head):
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


class Upload:
    """A file value carried out-of-band in a multipart request.

    In JSON it serializes as null; the packer substitutes the real content.
    The body is read at most once and kept in memory.
    """

    def __init__(
        self,
        body: bytes | BinaryIO,
        filename: str = "",
        content_type: str | None = None,
    ):
        self.body = body
        self.filename = filename
        self.content_type = content_type
        self._content: bytes | None = None

    def read(self) -> bytes:
        """Return the full content, reading the body on first use."""
        if self._content is None:
            if isinstance(self.body, (bytes, bytearray, memoryview)):
                self._content = bytes(self.body)
            else:
                self._content = self.body.read()
        return self._content

    def __repr__(self) -> str:
        return f"Upload(filename={self.filename!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any):
        return core_schema.is_instance_schema(
            cls,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda _value: None, when_used="json"
            ),
        )


@dataclass
class FilePart:
    """One uploaded file content group."""
    name: str  # the group index as a string
    content: bytes
    content_type: str
    filename: str | None = None


@dataclass
class MultipartBody:
    """The parts of a multipart GraphQL request."""
    operations: str
    map: dict[str, list[str]] = field(default_factory=dict)
    parts: list[FilePart] = field(default_factory=list)

    def encode(self, boundary: str | None = None) -> tuple[bytes, str]:
        """Render the body; returns (content, Content-Type header value)."""
        boundary = boundary or secrets.token_hex(16)
        delimiter = f"--{boundary}\r\n".encode()
        chunks = []
        for name, value in (("operations", self.operations), ("map", json.dumps(self.map))):
            chunks.append(delimiter)
            chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
            chunks.append(value.encode())
            chunks.append(b"\r\n")
        for part in self.parts:
            disposition = f'form-data; name="{part.name}"'
            if part.filename:
                disposition += f'; filename="{_quote(part.filename)}"'
            chunks.append(delimiter)
            chunks.append(f"Content-Disposition: {disposition}\r\n".encode())
            chunks.append(f"Content-Type: {part.content_type}\r\n\r\n".encode())
            chunks.append(part.content)
            chunks.append(b"\r\n")
        chunks.append(f"--{boundary}--\r\n".encode())
        return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\r", "").replace("\n", "")


def find_files(value: Any, path: str = "variables") -> Iterator[tuple[str, Upload]]:
    """Yield (dotted path, upload) for every Upload in a serialized variables graph."""
    if isinstance(value, Upload):
        yield path, value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from find_files(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from find_files(item, f"{path}.{index}")


def pack(request: "Request") -> MultipartBody:
    """Build the multipart body for a request.

    Raises:
        TransportError: If a file's content cannot be read
    """
    from .request import serialize_variables

    operations = json.dumps(request.payload())
    variables = serialize_variables(request.variables, mode="python")

    # content -> (first upload, paths); dicts keep first-seen order
    groups: dict[bytes, tuple[Upload, list[str]]] = {}
    for path, upload in find_files(variables):
        try:
            content = upload.read()
        except OSError as e:
            raise TransportError(f"error reading file at {path}: {e}") from e
        if content in groups:
            groups[content][1].append(path)
        else:
            groups[content] = (upload, [path])

    body = MultipartBody(operations=operations)
    for index, (content, (upload, paths)) in enumerate(groups.items()):
        name = str(index)
        body.map[name] = paths
        body.parts.append(
            FilePart(
                name=name,
                content=content,
                content_type=upload.content_type or sniff_content_type(content),
                filename=upload.filename.strip() or None,
            )
        )
    logger.debug(
        "Packed %d file reference(s) into %d part(s)",
        sum(len(paths) for paths in body.map.values()),
        len(body.parts),
    )
    return body
