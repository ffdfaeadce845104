"""Core modules for GraphQL binding generation and execution."""

from .auth import ApiKeyAuth, BearerAuth, HeaderAuth
from .client import GraphQLClient, TransportConfig
from .errors import (
    DecodeError,
    GqlOpgenError,
    GraphQLErrorEntry,
    GraphQLErrorList,
    MissingDiscriminator,
    RequestCancelled,
    TransportError,
    UnknownVariant,
    UnsupportedOperation,
    ValidationError,
)
from .generator import BindingGenerator, GenerationResult
from .hooks import (
    AddHeaderHook,
    FilterOperationsHook,
    HookRunner,
    PostGenerateHook,
    PreGenerateHook,
)
from .ir import (
    IRArgument,
    IREnum,
    IREnumValue,
    IRField,
    IRInterface,
    IRScalar,
    IRSchema,
    IRType,
    IRUnion,
    ResolvedOperation,
    TypeRef,
)
from .models import UNSET, BindingModel, InputModel, decode_variant
from .parser import SchemaParser, parse_operations
from .request import Request, Response
from .resolver import TypeResolver
from .scalars import ScalarBinding, ScalarRegistry
from .synthesizer import BindingSet, BindingSynthesizer
from .upload import MultipartBody, Upload, pack

__all__ = [
    # Auth
    "ApiKeyAuth",
    "BearerAuth",
    "HeaderAuth",
    # Transport
    "GraphQLClient",
    "TransportConfig",
    "Request",
    "Response",
    # Uploads
    "Upload",
    "MultipartBody",
    "pack",
    # Errors
    "GqlOpgenError",
    "ValidationError",
    "DecodeError",
    "MissingDiscriminator",
    "UnknownVariant",
    "TransportError",
    "UnsupportedOperation",
    "GraphQLErrorEntry",
    "GraphQLErrorList",
    "RequestCancelled",
    # Scalars
    "ScalarBinding",
    "ScalarRegistry",
    # Hooks
    "PreGenerateHook",
    "PostGenerateHook",
    "AddHeaderHook",
    "FilterOperationsHook",
    "HookRunner",
    # IR types
    "TypeRef",
    "IRArgument",
    "IREnum",
    "IREnumValue",
    "IRField",
    "IRInterface",
    "IRScalar",
    "IRSchema",
    "IRType",
    "IRUnion",
    "ResolvedOperation",
    # Parsing and resolution
    "SchemaParser",
    "parse_operations",
    "TypeResolver",
    # Generation
    "BindingSynthesizer",
    "BindingSet",
    "BindingGenerator",
    "GenerationResult",
    # Runtime helpers for generated code
    "UNSET",
    "BindingModel",
    "InputModel",
    "decode_variant",
]
