"""Intermediate Representation (IR) for GraphQL schemas and operations.

This module defines dataclasses that represent GraphQL schema constructs
and resolved operations in a language-agnostic way, suitable for binding
synthesis and code generation.
"""

from dataclasses import dataclass, field
from typing import Any

from graphql import ListTypeNode, NonNullTypeNode, TypeNode, ValueNode

BUILTIN_SCALARS = ("String", "Int", "Float", "Boolean", "ID")


@dataclass(frozen=True)
class TypeRef:
    """A possibly wrapped reference to a named type, e.g. ``[ID!]!``."""
    kind: str  # 'NAMED', 'LIST' or 'NON_NULL'
    name: str | None = None
    of_type: "TypeRef | None" = None

    @classmethod
    def named(cls, name: str) -> "TypeRef":
        return cls("NAMED", name=name)

    @classmethod
    def list_of(cls, of_type: "TypeRef") -> "TypeRef":
        return cls("LIST", of_type=of_type)

    @classmethod
    def non_null(cls, of_type: "TypeRef") -> "TypeRef":
        return cls("NON_NULL", of_type=of_type)

    @classmethod
    def from_node(cls, node: TypeNode) -> "TypeRef":
        """Build a TypeRef from a graphql-core type node."""
        if isinstance(node, NonNullTypeNode):
            return cls.non_null(cls.from_node(node.type))
        if isinstance(node, ListTypeNode):
            return cls.list_of(cls.from_node(node.type))
        return cls.named(node.name.value)

    @property
    def named_type(self) -> str:
        ref = self
        while ref.kind != "NAMED":
            ref = ref.of_type
        return ref.name

    @property
    def is_non_null(self) -> bool:
        return self.kind == "NON_NULL"

    @property
    def nullable(self) -> "TypeRef":
        """This reference with the outer non-null wrapper removed."""
        return self.of_type if self.is_non_null else self

    @property
    def is_list(self) -> bool:
        return self.nullable.kind == "LIST"

    def __str__(self) -> str:
        if self.kind == "NON_NULL":
            return f"{self.of_type}!"
        if self.kind == "LIST":
            return f"[{self.of_type}]"
        return self.name


@dataclass
class IRArgument:
    """Represents an argument to a field."""
    name: str
    type: TypeRef
    default_value: ValueNode | None = None
    description: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default_value is not None


@dataclass
class IRField:
    """Represents a field in an object, interface or input type."""
    name: str
    type: TypeRef
    description: str | None = None
    arguments: list[IRArgument] = field(default_factory=list)
    # Input fields only
    default_value: ValueNode | None = None

    @property
    def type_name(self) -> str:
        return self.type.named_type

    @property
    def is_list(self) -> bool:
        return self.type.is_list

    @property
    def is_optional(self) -> bool:
        return not self.type.is_non_null

    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    def get_argument(self, name: str) -> IRArgument | None:
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None


@dataclass
class IREnumValue:
    """Represents a single value in a GraphQL enum."""
    name: str
    description: str | None = None


@dataclass
class IREnum:
    """Represents a GraphQL enum type."""
    name: str
    values: list[IREnumValue]
    description: str | None = None

    @property
    def value_names(self) -> list[str]:
        return [v.name for v in self.values]


@dataclass
class IRType:
    """Represents a GraphQL object type or input type."""
    name: str
    fields: list[IRField]
    interfaces: list[str] = field(default_factory=list)
    description: str | None = None
    is_input: bool = False

    def get_field(self, name: str) -> IRField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass
class IRInterface:
    """Represents a GraphQL interface type."""
    name: str
    fields: list[IRField]
    interfaces: list[str] = field(default_factory=list)
    description: str | None = None

    def get_field(self, name: str) -> IRField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass
class IRUnion:
    """Represents a GraphQL union type."""
    name: str
    types: list[str]
    description: str | None = None


@dataclass
class IRScalar:
    """Represents a GraphQL scalar type."""
    name: str
    description: str | None = None


@dataclass
class IRDirective:
    """Represents a directive definition."""
    name: str
    locations: list[str]
    arguments: list[IRArgument] = field(default_factory=list)
    repeatable: bool = False
    description: str | None = None

    def get_argument(self, name: str) -> IRArgument | None:
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None


def _condition_directive(name: str, description: str) -> IRDirective:
    return IRDirective(
        name=name,
        locations=["FIELD", "FRAGMENT_SPREAD", "INLINE_FRAGMENT"],
        arguments=[IRArgument(name="if", type=TypeRef.non_null(TypeRef.named("Boolean")))],
        description=description,
    )


# Executable directives every server supports
BUILTIN_DIRECTIVES = {
    "skip": _condition_directive("skip", "Omit the selection when `if` is true."),
    "include": _condition_directive("include", "Keep the selection only when `if` is true."),
}


@dataclass
class IRSchema:
    """Complete intermediate representation of a GraphQL schema."""
    scalars: dict[str, IRScalar] = field(default_factory=dict)
    enums: dict[str, IREnum] = field(default_factory=dict)
    types: dict[str, IRType] = field(default_factory=dict)
    inputs: dict[str, IRType] = field(default_factory=dict)
    interfaces: dict[str, IRInterface] = field(default_factory=dict)
    unions: dict[str, IRUnion] = field(default_factory=dict)
    directives: dict[str, IRDirective] = field(default_factory=dict)
    query_type: str = "Query"
    mutation_type: str = "Mutation"
    subscription_type: str = "Subscription"

    def get_type_by_name(self, name: str) -> IRType | IRInterface | None:
        """Look up an object type or interface by name."""
        if name in self.types:
            return self.types[name]
        if name in self.interfaces:
            return self.interfaces[name]
        return None

    def get_directive(self, name: str) -> IRDirective | None:
        """Look up a directive; @skip and @include cannot be redefined."""
        return BUILTIN_DIRECTIVES.get(name) or self.directives.get(name)

    def kind_of(self, name: str) -> str | None:
        """Return the introspection kind of a named type, or None if unknown."""
        if name in BUILTIN_SCALARS or name in self.scalars:
            return "SCALAR"
        if name in self.enums:
            return "ENUM"
        if name in self.types:
            return "OBJECT"
        if name in self.interfaces:
            return "INTERFACE"
        if name in self.unions:
            return "UNION"
        if name in self.inputs:
            return "INPUT_OBJECT"
        return None

    def is_leaf(self, name: str) -> bool:
        return self.kind_of(name) in ("SCALAR", "ENUM")

    def is_abstract(self, name: str) -> bool:
        return self.kind_of(name) in ("INTERFACE", "UNION")

    def is_input_type(self, name: str) -> bool:
        return self.kind_of(name) in ("SCALAR", "ENUM", "INPUT_OBJECT")

    def possible_types(self, name: str) -> list[str]:
        """Concrete object types that satisfy `name`, in declaration order."""
        kind = self.kind_of(name)
        if kind == "OBJECT":
            return [name]
        if kind == "UNION":
            return [t for t in self.unions[name].types if t in self.types]
        if kind == "INTERFACE":
            return [t.name for t in self.types.values() if name in t.interfaces]
        return []

    def root_type(self, operation_type: str) -> str:
        return {
            "query": self.query_type,
            "mutation": self.mutation_type,
            "subscription": self.subscription_type,
        }[operation_type]


@dataclass
class ResolvedVariable:
    """A variable declared by an operation."""
    name: str
    type: TypeRef
    default_literal: str | None = None  # printed verbatim from the operation
    default_value: Any = None

    @property
    def has_default(self) -> bool:
        return self.default_literal is not None


@dataclass
class ResolvedField:
    """A selected field, annotated with the type it resolves to."""
    response_key: str
    name: str
    parent_type: str
    type: TypeRef
    selection: "ResolvedSelectionSet | None" = None
    description: str | None = None
    # Set on variant fields that are exactly the common field of the same key
    inherited: bool = False
    # Every selection of the field sits under @skip/@include, so it may be absent
    conditional: bool = False


@dataclass
class ResolvedSelectionSet:
    """One selection set, resolved against its static parent type.

    For interface/union positions `fields` holds the common selections and
    `variants` maps every possible concrete type to its merged field list.
    """
    type_name: str
    fields: list[ResolvedField]
    is_abstract: bool = False
    possible_types: list[str] = field(default_factory=list)
    variants: dict[str, list[ResolvedField]] = field(default_factory=dict)


@dataclass
class ResolvedOperation:
    """An operation validated against the schema, ready for synthesis."""
    name: str
    operation_type: str  # 'query' or 'mutation'
    variables: list[ResolvedVariable]
    selection: ResolvedSelectionSet
    query_text: str
    fragments: list[str] = field(default_factory=list)
    # Schema input types reachable from the variables, dependencies first
    input_types: list[IRType] = field(default_factory=list)
    enums: list[IREnum] = field(default_factory=list)
    scalars: list[str] = field(default_factory=list)
