"""Binding synthesis: resolved operations to named, typed shapes.

The synthesizer decides every name and Python annotation that ends up in
generated code. Its output (a BindingSet) is exactly what the template
renders; the template makes no naming or typing decisions of its own.
"""

import dataclasses
import keyword
import re
from dataclasses import dataclass, field

from graphql import print_ast
from pydantic import BaseModel

from .ir import (
    IREnum,
    IRType,
    ResolvedField,
    ResolvedOperation,
    ResolvedSelectionSet,
    ResolvedVariable,
    TypeRef,
)
from .scalars import ScalarRegistry

# Names generated models cannot use as attributes
RESERVED_ATTRIBUTES = set(dir(BaseModel)) | {
    "graphql_type", "build", "serialize", "selection_order", "serialize_in_selection_order",
}

# Names generated operation functions use for their own parameters
RESERVED_PARAMETERS = {"client", "cancel"}


def to_snake_case(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    return re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1).lower()


def to_pascal_case(name: str) -> str:
    """Convert snake_case or camelCase to PascalCase."""
    snake = to_snake_case(name)
    return "".join(word[:1].upper() + word[1:] for word in snake.split("_"))


def safe_identifier(name: str, reserved: set[str] = frozenset()) -> str:
    """Make a snake_case Python attribute name from a GraphQL name."""
    ident = to_snake_case(name).lstrip("_") or "field"
    if ident[0].isdigit():
        ident = f"f_{ident}"
    if keyword.iskeyword(ident) or ident in reserved:
        ident = f"{ident}_"
    return ident


def _unique(name: str, taken: set[str]) -> str:
    candidate = name
    counter = 2
    while candidate in taken:
        candidate = f"{name}{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


@dataclass
class ShapeField:
    """One field of a response shape."""
    name: str  # Python attribute
    wire_key: str
    graphql_type: TypeRef
    python_type: str
    shape: "ResponseShape | None" = None
    description: str | None = None
    # Declared by the abstract base class, not redeclared by the variant
    inherited: bool = False
    # @skip/@include may leave it out of the response
    conditional: bool = False

    @property
    def required(self) -> bool:
        return self.graphql_type.is_non_null and not self.conditional

    @property
    def is_polymorphic(self) -> bool:
        return self.shape is not None and self.shape.abstract


@dataclass
class VariantShape:
    """The shape of an abstract field for one concrete type."""
    name: str
    type_name: str
    base: str
    # Selection order, inherited and own fields interleaved
    fields: list[ShapeField]
    # Attribute names of the abstract base, in its order
    base_order: list[str] = field(default_factory=list)

    @property
    def own_fields(self) -> list[ShapeField]:
        return [f for f in self.fields if not f.inherited]

    @property
    def selection_order(self) -> list[str]:
        """Attribute names in selection order when that differs from the model's.

        The model declares the base fields first and its own after them.
        """
        order = [f.name for f in self.fields]
        declared = self.base_order + [name for name in order if name not in self.base_order]
        return [] if order == declared else order


@dataclass
class ResponseShape:
    """The output type of one selection set."""
    name: str
    graphql_type: str
    fields: list[ShapeField]
    abstract: bool = False
    possible_types: list[str] = field(default_factory=list)
    variants: list[VariantShape] = field(default_factory=list)

    @property
    def field_order(self) -> list[str]:
        return [f.wire_key for f in self.fields]

    def variant_for(self, type_name: str) -> VariantShape | None:
        for variant in self.variants:
            if variant.type_name == type_name:
                return variant
        return None


@dataclass
class InputField:
    """One field of an input or variables model."""
    name: str
    wire_key: str
    graphql_type: TypeRef
    python_type: str
    default_literal: str | None = None
    description: str | None = None

    @property
    def required(self) -> bool:
        """Required fields must be sent; everything else may be omitted."""
        return self.graphql_type.is_non_null and self.default_literal is None


@dataclass
class InputShape:
    """An input object type, or the variables of one operation."""
    name: str
    fields: list[InputField]
    graphql_type: str | None = None
    description: str | None = None

    @property
    def required_fields(self) -> list[InputField]:
        return [f for f in self.fields if f.required]

    @property
    def optional_fields(self) -> list[InputField]:
        return [f for f in self.fields if not f.required]


@dataclass
class EnumShape:
    """A GraphQL enum rendered as a str Enum."""
    name: str
    members: list[tuple[str, str]]  # (Python member name, GraphQL value)
    description: str | None = None


@dataclass
class BindingSet:
    """Everything generated for one operation."""
    operation_name: str
    operation_type: str
    function_name: str
    constant_name: str
    query_text: str
    variables: InputShape
    response: ResponseShape
    # Response shapes, dependencies first; `response` is last
    shapes: list[ResponseShape]
    input_types: list[InputShape]
    enums: list[EnumShape]
    scalar_imports: list[str]
    uses_uploads: bool = False

    @property
    def discriminators(self) -> dict[str, dict[str, str]]:
        """Abstract shape name -> {concrete type name: variant shape name}."""
        return {
            shape.name: {v.type_name: v.name for v in shape.variants}
            for shape in self.shapes
            if shape.abstract
        }


class BindingSynthesizer:
    """Turns resolved operations into binding sets.

    Pass the same `taken_names` set to every call made for one generated
    module so class names stay unique across operations.
    """

    def __init__(self, scalars: ScalarRegistry | None = None):
        self.scalars = scalars or ScalarRegistry()

    def synthesize(
        self, operation: ResolvedOperation, taken_names: set[str] | None = None
    ) -> BindingSet:
        return _Synthesis(self.scalars, operation, taken_names).run()


class _Synthesis:
    def __init__(
        self,
        scalars: ScalarRegistry,
        operation: ResolvedOperation,
        taken_names: set[str] | None,
    ):
        self.scalars = scalars
        self.operation = operation
        self.taken = taken_names if taken_names is not None else set()
        self.enum_names = {e.name for e in operation.enums}
        self.input_names = {t.name for t in operation.input_types}
        self.shapes: list[ResponseShape] = []

    def run(self) -> BindingSet:
        op = self.operation
        # Enums and input types keep their schema names and are shared
        # between operations; shapes must never take those names.
        self.taken.update(self.enum_names | self.input_names)
        variables = self._variables_shape()
        response = self._shape(f"{op.name}Response", op.selection)
        return BindingSet(
            operation_name=op.name,
            operation_type=op.operation_type,
            function_name=safe_identifier(op.name),
            constant_name=f"{to_snake_case(op.name).upper()}_OPERATION",
            query_text=op.query_text,
            variables=variables,
            response=response,
            shapes=self.shapes,
            input_types=[self._input_shape(t) for t in op.input_types],
            enums=[self._enum_shape(e) for e in op.enums],
            scalar_imports=self.scalars.imports_for(op.scalars),
            uses_uploads=self._uses_uploads(),
        )

    # Types

    def _leaf_type(self, name: str) -> str:
        if name in self.enum_names:
            return name
        if name in self.input_names:
            return f'"{name}"'
        return self.scalars.get(name).python_type

    def _annotation(self, ref: TypeRef, leaf: str) -> str:
        if ref.is_non_null:
            return self._unwrapped(ref.of_type, leaf)
        return f"Optional[{self._unwrapped(ref, leaf)}]"

    def _unwrapped(self, ref: TypeRef, leaf: str) -> str:
        if ref.kind == "LIST":
            return f"List[{self._annotation(ref.of_type, leaf)}]"
        return leaf

    # Response shapes

    def _shape(self, name: str, selection: ResolvedSelectionSet) -> ResponseShape:
        name = _unique(name, self.taken)
        used: set[str] = set()
        fields = [self._shape_field(name, f, used) for f in selection.fields]
        shape = ResponseShape(
            name=name,
            graphql_type=selection.type_name,
            fields=fields,
            abstract=selection.is_abstract,
            possible_types=list(selection.possible_types),
        )
        if selection.is_abstract:
            base_fields = {f.wire_key: f for f in fields}
            for concrete in selection.possible_types:
                shape.variants.append(
                    self._variant(shape, concrete, selection.variants[concrete], base_fields)
                )
        self.shapes.append(shape)
        return shape

    def _variant(
        self,
        shape: ResponseShape,
        concrete: str,
        resolved_fields: list[ResolvedField],
        base_fields: dict[str, ShapeField],
    ) -> VariantShape:
        name = _unique(f"{shape.name}{concrete}", self.taken)
        used = {f.name for f in base_fields.values()}
        fields = []
        for resolved in resolved_fields:
            base = base_fields.get(resolved.response_key)
            if resolved.inherited and base is not None:
                fields.append(dataclasses.replace(base, inherited=True))
                continue
            # Redeclare under the base attribute name so the override replaces it
            override = base.name if base is not None else None
            fields.append(self._shape_field(name, resolved, used, override))
        return VariantShape(
            name=name,
            type_name=concrete,
            base=shape.name,
            fields=fields,
            base_order=[f.name for f in base_fields.values()],
        )

    def _shape_field(
        self,
        parent_name: str,
        resolved: ResolvedField,
        used: set[str],
        python_name: str | None = None,
    ) -> ShapeField:
        if python_name is None:
            python_name = _unique(
                safe_identifier(resolved.response_key, RESERVED_ATTRIBUTES), used
            )
        nested = None
        if resolved.selection is not None:
            nested = self._shape(
                f"{parent_name}{to_pascal_case(resolved.response_key)}", resolved.selection
            )
            leaf = self._shape_type(nested)
        else:
            leaf = self._leaf_type(resolved.type.named_type)
        annotated = resolved.type.nullable if resolved.conditional else resolved.type
        return ShapeField(
            name=python_name,
            wire_key=resolved.response_key,
            graphql_type=resolved.type,
            python_type=self._annotation(annotated, leaf),
            shape=nested,
            description=resolved.description,
            conditional=resolved.conditional,
        )

    @staticmethod
    def _shape_type(shape: ResponseShape) -> str:
        if not shape.abstract or not shape.variants:
            return shape.name
        if len(shape.variants) == 1:
            return shape.variants[0].name
        return f"Union[{', '.join(v.name for v in shape.variants)}]"

    # Inputs

    def _variables_shape(self) -> InputShape:
        used = set(RESERVED_PARAMETERS)
        fields = [self._variable_field(v, used) for v in self.operation.variables]
        return InputShape(
            name=_unique(f"{self.operation.name}Variables", self.taken),
            fields=fields,
        )

    def _variable_field(self, variable: ResolvedVariable, used: set[str]) -> InputField:
        return self._input_field(
            variable.name, variable.type, variable.default_literal, None, used
        )

    def _input_shape(self, input_type: IRType) -> InputShape:
        used: set[str] = set()
        fields = [
            self._input_field(
                f.name,
                f.type,
                print_ast(f.default_value) if f.default_value is not None else None,
                f.description,
                used,
            )
            for f in input_type.fields
        ]
        return InputShape(
            name=input_type.name,
            fields=fields,
            graphql_type=input_type.name,
            description=input_type.description,
        )

    def _input_field(
        self,
        wire_key: str,
        ref: TypeRef,
        default_literal: str | None,
        description: str | None,
        used: set[str],
    ) -> InputField:
        # A defaulted non-null field may still be omitted, so it is Optional in Python
        annotated = ref.nullable if default_literal is not None else ref
        return InputField(
            name=_unique(safe_identifier(wire_key, RESERVED_ATTRIBUTES | used), used),
            wire_key=wire_key,
            graphql_type=ref,
            python_type=self._annotation(annotated, self._leaf_type(ref.named_type)),
            default_literal=default_literal,
            description=description,
        )

    @staticmethod
    def _enum_shape(enum: IREnum) -> EnumShape:
        members = []
        used: set[str] = set()
        for value in enum.values:
            member = value.name
            if keyword.iskeyword(member):
                member = f"{member}_"
            if member.startswith("_"):
                member = f"V{member}"
            members.append((_unique(member, used), value.name))
        return EnumShape(name=enum.name, members=members, description=enum.description)

    def _uses_uploads(self) -> bool:
        named = {v.type.named_type for v in self.operation.variables}
        for input_type in self.operation.input_types:
            named.update(f.type_name for f in input_type.fields)
        return any(
            name not in self.enum_names
            and name not in self.input_names
            and self.scalars.get(name).python_type == "Upload"
            for name in named
        )
