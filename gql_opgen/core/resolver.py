"""Type resolution of GraphQL operations against an IRSchema.

Walks an operation's selection tree, resolves every selected field to its
schema type, partitions fragments by the concrete types they apply to and
validates variables and literal values along the way.

Example:
    schema = SchemaParser().parse_source(sdl)
    document = parse(operations_text)
    operations, errors = TypeResolver(schema).resolve_document(document)
"""

import dataclasses
import logging

from graphql import (
    BooleanValueNode,
    DirectiveNode,
    DocumentNode,
    EnumValueNode,
    FieldNode,
    FloatValueNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    IntValueNode,
    ListValueNode,
    NameNode,
    NullValueNode,
    ObjectValueNode,
    OperationDefinitionNode,
    SelectionSetNode,
    StringValueNode,
    ValueNode,
    VariableNode,
    Visitor,
    print_ast,
    value_from_ast_untyped,
    visit,
)

from .errors import ValidationError
from .ir import (
    BUILTIN_DIRECTIVES,
    BUILTIN_SCALARS,
    IRField,
    IRSchema,
    IRType,
    ResolvedField,
    ResolvedOperation,
    ResolvedSelectionSet,
    ResolvedVariable,
    TypeRef,
)

logger = logging.getLogger(__name__)

TYPENAME = "__typename"

# Literal node kinds accepted by each built-in scalar
_SCALAR_LITERALS = {
    "Int": (IntValueNode,),
    "Float": (IntValueNode, FloatValueNode),
    "String": (StringValueNode,),
    "Boolean": (BooleanValueNode,),
    "ID": (StringValueNode, IntValueNode),
}


def is_type_subtype(actual: TypeRef, expected: TypeRef) -> bool:
    """Whether a value of type `actual` may be used where `expected` is required."""
    if expected.is_non_null:
        return actual.is_non_null and is_type_subtype(actual.of_type, expected.of_type)
    if actual.is_non_null:
        return is_type_subtype(actual.of_type, expected)
    if expected.kind == "LIST":
        return actual.kind == "LIST" and is_type_subtype(actual.of_type, expected.of_type)
    if actual.kind == "LIST":
        return False
    return actual.name == expected.name


class _TypenameInjector(Visitor):
    """Adds __typename to the given selection sets so variants can be told apart."""

    def __init__(self, targets: set[int]):
        super().__init__()
        self.targets = targets

    def enter_selection_set(self, node, *_args):
        if id(node) not in self.targets:
            return None
        for selection in node.selections:
            if (
                isinstance(selection, FieldNode)
                and selection.alias is None
                and selection.name.value == TYPENAME
            ):
                return None
        typename = FieldNode(name=NameNode(value=TYPENAME), arguments=(), directives=())
        return SelectionSetNode(selections=(typename, *node.selections))


class _SpreadCollector(Visitor):
    def __init__(self):
        super().__init__()
        self.names: list[str] = []

    def enter_fragment_spread(self, node, *_args):
        self.names.append(node.name.value)


def _spread_names(selection_set: SelectionSetNode) -> list[str]:
    """Names of all fragments spread anywhere below a selection set."""
    collector = _SpreadCollector()
    visit(selection_set, collector)
    return collector.names


class TypeResolver:
    """Resolves operations against a schema.

    The resolver holds no per-operation state, so one instance can be shared.
    """

    def __init__(self, schema: IRSchema):
        self.schema = schema

    def resolve(
        self,
        operation: OperationDefinitionNode,
        fragments: dict[str, FragmentDefinitionNode] | None = None,
    ) -> ResolvedOperation:
        """Resolve a single operation.

        Raises:
            ValidationError: If the operation does not match the schema
        """
        return _OperationResolution(self.schema, operation, fragments or {}).run()

    def resolve_document(
        self, document: DocumentNode
    ) -> tuple[list[ResolvedOperation], dict[str, ValidationError]]:
        """Resolve every operation in a document.

        A failing operation does not stop the others; its error is returned
        keyed by operation name. Only the first operation of a given name is
        resolved; later ones are reported as duplicates unless the first
        already failed.
        """
        fragments = {
            d.name.value: d
            for d in document.definitions
            if isinstance(d, FragmentDefinitionNode)
        }
        resolved: list[ResolvedOperation] = []
        errors: dict[str, ValidationError] = {}
        seen: set[str] = set()
        for index, definition in enumerate(document.definitions):
            if not isinstance(definition, OperationDefinitionNode):
                continue
            name = definition.name.value if definition.name else f"<anonymous #{index}>"
            if name in seen:
                errors.setdefault(
                    name, ValidationError("operation name is defined more than once", name)
                )
                continue
            seen.add(name)
            try:
                resolved.append(self.resolve(definition, fragments))
            except ValidationError as e:
                logger.debug("Operation %s failed validation: %s", name, e)
                errors[name] = e
        return resolved, errors


class _OperationResolution:
    """State for resolving one operation."""

    def __init__(
        self,
        schema: IRSchema,
        operation: OperationDefinitionNode,
        fragments: dict[str, FragmentDefinitionNode],
    ):
        self.schema = schema
        self.operation = operation
        self.fragments = fragments
        self.name: str | None = None
        self.variables: dict[str, ResolvedVariable] = {}
        self.used_variables: set[str] = set()
        self.used_fragments: list[str] = []
        self.abstract_selection_sets: set[int] = set()
        self.enums: list[str] = []
        self.scalars: list[str] = []

    def _error(self, message: str) -> ValidationError:
        return ValidationError(message, operation=self.name)

    def run(self) -> ResolvedOperation:
        op = self.operation
        if op.name is None:
            raise self._error("operations must be named")
        self.name = op.name.value
        op_type = op.operation.value
        if op_type == "subscription":
            raise self._error("subscriptions are not supported")

        root = self.schema.root_type(op_type)
        if root not in self.schema.types:
            raise self._error(f"schema does not define a {op_type} root type")

        for definition in op.variable_definitions or ():
            variable = self._resolve_variable(definition)
            if variable.name in self.variables:
                raise self._error(f"variable ${variable.name} is declared more than once")
            self.variables[variable.name] = variable
            self._check_directives(
                definition.directives,
                "VARIABLE_DEFINITION",
                f"variable ${variable.name}",
                allow_variables=False,
            )
        self._check_directives(op.directives, op_type.upper(), f"{op_type} {self.name}")

        self._check_fragment_cycles()
        selection = self._resolve_selection_set(root, [op.selection_set])

        unused = [name for name in self.variables if name not in self.used_variables]
        if unused:
            raise self._error(
                f"variable(s) {', '.join('$' + n for n in unused)} declared but never used"
            )

        input_types = self._collect_input_types()
        return ResolvedOperation(
            name=self.name,
            operation_type=op_type,
            variables=list(self.variables.values()),
            selection=selection,
            query_text=self._print_query(),
            fragments=list(self.used_fragments),
            input_types=input_types,
            enums=[self.schema.enums[name] for name in self.enums],
            scalars=list(self.scalars),
        )

    # Variables and values

    def _resolve_variable(self, node) -> ResolvedVariable:
        name = node.variable.name.value
        type_ref = TypeRef.from_node(node.type)
        if not self.schema.is_input_type(type_ref.named_type):
            raise self._error(f"variable ${name} cannot be of non-input type {type_ref}")
        self._use_named_type(type_ref.named_type)

        variable = ResolvedVariable(name=name, type=type_ref)
        if node.default_value is not None:
            self._check_value(
                node.default_value,
                type_ref,
                f"default value of ${name}",
                allow_variables=False,
            )
            variable.default_literal = print_ast(node.default_value)
            variable.default_value = value_from_ast_untyped(node.default_value)
        return variable

    def _check_value(
        self,
        value: ValueNode,
        type_ref: TypeRef,
        where: str,
        *,
        allow_variables: bool = True,
        location_has_default: bool = False,
    ):
        """Check that a literal (or variable) fits the expected input type."""
        if isinstance(value, VariableNode):
            if not allow_variables:
                raise self._error(f"{where}: variables are not allowed here")
            self._check_variable_usage(value.name.value, type_ref, location_has_default, where)
            return
        if isinstance(value, NullValueNode):
            if type_ref.is_non_null:
                raise self._error(f"{where}: null is not allowed for type {type_ref}")
            return

        ref = type_ref.nullable
        if ref.kind == "LIST":
            items = value.values if isinstance(value, ListValueNode) else (value,)
            for index, item in enumerate(items):
                self._check_value(
                    item, ref.of_type, f"{where}[{index}]", allow_variables=allow_variables
                )
            return

        kind = self.schema.kind_of(ref.name)
        if kind == "SCALAR":
            # Custom scalars accept any literal
            expected = _SCALAR_LITERALS.get(ref.name)
            if expected is not None and not isinstance(value, expected):
                raise self._error(
                    f"{where}: {print_ast(value)} is not a valid {ref.name} value"
                )
        elif kind == "ENUM":
            if (
                not isinstance(value, EnumValueNode)
                or value.value not in self.schema.enums[ref.name].value_names
            ):
                raise self._error(
                    f"{where}: {print_ast(value)} is not a value of enum {ref.name}"
                )
        elif kind == "INPUT_OBJECT":
            if not isinstance(value, ObjectValueNode):
                raise self._error(f"{where}: expected an object for input type {ref.name}")
            self._check_input_object(value, self.schema.inputs[ref.name], where, allow_variables)
        else:
            raise self._error(f"{where}: unknown input type {ref.name}")

    def _check_input_object(
        self, value: ObjectValueNode, input_type: IRType, where: str, allow_variables: bool
    ):
        given = set()
        for field_node in value.fields:
            field_name = field_node.name.value
            field_def = input_type.get_field(field_name)
            if field_def is None:
                raise self._error(
                    f"{where}: field {field_name!r} is not defined on {input_type.name}"
                )
            given.add(field_name)
            self._check_value(
                field_node.value,
                field_def.type,
                f"{where}.{field_name}",
                allow_variables=allow_variables,
                location_has_default=field_def.has_default,
            )
        for field_def in input_type.fields:
            if field_def.type.is_non_null and not field_def.has_default and field_def.name not in given:
                raise self._error(
                    f"{where}: required field {input_type.name}.{field_def.name} is missing"
                )

    def _check_variable_usage(
        self, name: str, location: TypeRef, location_has_default: bool, where: str
    ):
        variable = self.variables.get(name)
        if variable is None:
            raise self._error(f"variable ${name} is not defined")
        self.used_variables.add(name)

        expected = location
        if location.is_non_null and not variable.type.is_non_null:
            if not (variable.has_default or location_has_default):
                raise self._error(
                    f"{where}: nullable variable ${name} of type {variable.type} "
                    f"cannot be used where {location} is expected"
                )
            expected = location.nullable
        if not is_type_subtype(variable.type, expected):
            raise self._error(
                f"{where}: variable ${name} of type {variable.type} "
                f"cannot be used where {location} is expected"
            )

    def _check_directives(
        self,
        directives: tuple[DirectiveNode, ...] | None,
        location: str,
        where: str,
        *,
        allow_variables: bool = True,
    ) -> bool:
        """Validate the directives applied at one location.

        Returns True when @skip or @include may drop the selection from the
        response.
        """
        conditional = False
        seen: set[str] = set()
        for node in directives or ():
            name = node.name.value
            directive = self.schema.get_directive(name)
            if directive is None:
                raise self._error(f"unknown directive @{name} on {where}")
            if location not in directive.locations:
                raise self._error(f"directive @{name} may not be used on {where}")
            if name in seen and not directive.repeatable:
                raise self._error(f"directive @{name} is used more than once on {where}")
            seen.add(name)

            given = set()
            for arg_node in node.arguments or ():
                arg_name = arg_node.name.value
                arg_def = directive.get_argument(arg_name)
                if arg_def is None:
                    raise self._error(f"unknown argument {arg_name!r} on directive @{name}")
                given.add(arg_name)
                self._check_value(
                    arg_node.value,
                    arg_def.type,
                    f"argument {arg_name!r} of @{name} on {where}",
                    allow_variables=allow_variables,
                    location_has_default=arg_def.has_default,
                )
            for arg_def in directive.arguments:
                if arg_def.type.is_non_null and not arg_def.has_default and arg_def.name not in given:
                    raise self._error(f"directive @{name} requires argument {arg_def.name!r}")

            if name in BUILTIN_DIRECTIVES and not _always_kept(node):
                conditional = True
        return conditional

    # Selections

    def _check_fragment_cycles(self):
        """Reject fragments that spread themselves, directly or through others."""
        acyclic: set[str] = set()

        def walk(name: str, path: tuple[str, ...]):
            if name in path:
                raise self._error(f"fragment {name!r} spreads itself")
            fragment = self.fragments.get(name)
            if fragment is None or name in acyclic:
                return
            for child in _spread_names(fragment.selection_set):
                walk(child, path + (name,))
            acyclic.add(name)

        for name in _spread_names(self.operation.selection_set):
            walk(name, ())

    def _resolve_selection_set(
        self, type_name: str, selection_sets: list[SelectionSetNode]
    ) -> ResolvedSelectionSet:
        """Resolve the merged selection sets found at one position."""
        schema = self.schema
        abstract = schema.is_abstract(type_name)
        possible = schema.possible_types(type_name)
        if abstract:
            self.abstract_selection_sets.update(id(s) for s in selection_sets)

        common: dict[str, list[FieldNode]] = {}
        variants: dict[str, dict[str, list[FieldNode]]] = {t: {} for t in possible}
        # (None or concrete type, response key) selected at least once unconditionally
        always: set[tuple[str | None, str]] = set()
        for selection_set in selection_sets:
            self._collect(type_name, selection_set, None, common, variants, possible, always)

        if not abstract:
            fields = [
                self._resolve_field(type_name, key, nodes, (type_name, key) not in always)
                for key, nodes in variants[type_name].items()
            ]
            return ResolvedSelectionSet(type_name=type_name, fields=fields, possible_types=possible)

        fields = [
            self._resolve_field(type_name, key, nodes, (None, key) not in always)
            for key, nodes in common.items()
        ]
        common_fields = {f.response_key: f for f in fields}
        resolved_variants: dict[str, list[ResolvedField]] = {}
        for concrete in possible:
            variant_fields = []
            for key, nodes in variants[concrete].items():
                base = common_fields.get(key)
                if base is not None and _same_nodes(nodes, common[key]):
                    variant_fields.append(dataclasses.replace(base, inherited=True))
                    continue
                resolved = self._resolve_field(
                    concrete, key, nodes, (concrete, key) not in always
                )
                if (
                    base is not None
                    and base.selection is None
                    and str(base.type) != str(resolved.type)
                ):
                    raise self._error(
                        f"field {key!r} resolves to {base.type} on {type_name} "
                        f"but to {resolved.type} on {concrete}"
                    )
                variant_fields.append(resolved)
            resolved_variants[concrete] = variant_fields

        return ResolvedSelectionSet(
            type_name=type_name,
            fields=fields,
            is_abstract=True,
            possible_types=possible,
            variants=resolved_variants,
        )

    def _collect(
        self,
        parent_type: str,
        selection_set: SelectionSetNode,
        applies_to: frozenset[str] | None,
        common: dict[str, list[FieldNode]],
        variants: dict[str, dict[str, list[FieldNode]]],
        possible: list[str],
        always: set[tuple[str | None, str]],
        conditional: bool = False,
    ):
        """Group field nodes by response key, for the common set and per concrete type.

        `applies_to` is None while no type-narrowing fragment has been entered.
        `conditional` is set below a fragment that @skip/@include may drop;
        keys selected outside any such fragment or field are added to `always`.
        """
        for selection in selection_set.selections:
            if isinstance(selection, FieldNode):
                key = selection.alias.value if selection.alias else selection.name.value
                dropped = self._check_directives(
                    selection.directives, "FIELD", f"field {key!r} of {parent_type}"
                )
                if applies_to is None:
                    common.setdefault(key, []).append(selection)
                    targets = possible
                else:
                    targets = [t for t in possible if t in applies_to]
                for concrete in targets:
                    variants[concrete].setdefault(key, []).append(selection)
                if not (conditional or dropped):
                    if applies_to is None:
                        always.add((None, key))
                    always.update((concrete, key) for concrete in targets)
            elif isinstance(selection, InlineFragmentNode):
                condition = (
                    selection.type_condition.name.value if selection.type_condition else None
                )
                dropped = self._check_directives(
                    selection.directives,
                    "INLINE_FRAGMENT",
                    f"inline fragment on {condition or parent_type}",
                )
                narrowed = self._narrow(parent_type, condition, applies_to, possible)
                self._collect(
                    parent_type, selection.selection_set, narrowed,
                    common, variants, possible, always, conditional or dropped,
                )
            elif isinstance(selection, FragmentSpreadNode):
                name = selection.name.value
                fragment = self.fragments.get(name)
                if fragment is None:
                    raise self._error(f"unknown fragment {name!r}")
                dropped = self._check_directives(
                    selection.directives, "FRAGMENT_SPREAD", f"spread of fragment {name!r}"
                )
                if name not in self.used_fragments:
                    self.used_fragments.append(name)
                    self._check_directives(
                        fragment.directives, "FRAGMENT_DEFINITION", f"fragment {name!r}"
                    )
                narrowed = self._narrow(
                    parent_type, fragment.type_condition.name.value, applies_to, possible
                )
                self._collect(
                    parent_type, fragment.selection_set, narrowed,
                    common, variants, possible, always, conditional or dropped,
                )

    def _narrow(
        self,
        parent_type: str,
        condition: str | None,
        applies_to: frozenset[str] | None,
        possible: list[str],
    ) -> frozenset[str] | None:
        """Compute the concrete types a fragment's selections apply to."""
        if condition is None:
            return applies_to
        if self.schema.kind_of(condition) not in ("OBJECT", "INTERFACE", "UNION"):
            raise self._error(f"fragment type condition {condition!r} is not a composite type")
        matching = frozenset(self.schema.possible_types(condition)) & frozenset(possible)
        if not matching:
            raise self._error(
                f"fragment on {condition} can never apply to {parent_type}"
            )
        if matching == frozenset(possible):
            return applies_to
        narrowed = matching if applies_to is None else matching & applies_to
        if not narrowed:
            raise self._error(
                f"fragment on {condition} can never apply inside its enclosing fragment"
            )
        return narrowed

    def _resolve_field(
        self, parent_type: str, key: str, nodes: list[FieldNode], conditional: bool = False
    ) -> ResolvedField:
        """Resolve all field nodes sharing one response key."""
        name = nodes[0].name.value
        for node in nodes[1:]:
            if node.name.value != name:
                raise self._error(
                    f"fields {key!r} conflict: {name} and {node.name.value} "
                    "are different fields"
                )

        if name == TYPENAME:
            if any(n.selection_set for n in nodes):
                raise self._error(f"field {TYPENAME} cannot have a selection of subfields")
            return ResolvedField(
                response_key=key,
                name=name,
                parent_type=parent_type,
                type=TypeRef.non_null(TypeRef.named("String")),
                conditional=conditional,
            )

        parent_def = self.schema.get_type_by_name(parent_type)
        field_def = parent_def.get_field(name) if parent_def is not None else None
        if field_def is None:
            raise self._error(f"Cannot query field {name!r} on type {parent_type!r}")
        self._check_arguments(parent_type, field_def, nodes)

        named = field_def.type.named_type
        kind = self.schema.kind_of(named)
        sub_selections = [n.selection_set for n in nodes if n.selection_set]
        selection = None
        if kind in ("SCALAR", "ENUM"):
            if sub_selections:
                raise self._error(
                    f"field {parent_type}.{name} of type {named} cannot have a selection "
                    "of subfields"
                )
            self._use_named_type(named)
        elif kind in ("OBJECT", "INTERFACE", "UNION"):
            if len(sub_selections) != len(nodes):
                raise self._error(
                    f"field {parent_type}.{name} of type {named} must have a selection "
                    "of subfields"
                )
            selection = self._resolve_selection_set(named, sub_selections)
        else:
            raise self._error(f"field {parent_type}.{name} has unknown type {named}")

        return ResolvedField(
            response_key=key,
            name=name,
            parent_type=parent_type,
            type=field_def.type,
            selection=selection,
            description=field_def.description,
            conditional=conditional,
        )

    def _check_arguments(self, parent_type: str, field_def: IRField, nodes: list[FieldNode]):
        signature = None
        for node in nodes:
            given = set()
            for arg_node in node.arguments or ():
                arg_name = arg_node.name.value
                arg_def = field_def.get_argument(arg_name)
                if arg_def is None:
                    raise self._error(
                        f"unknown argument {arg_name!r} on field {parent_type}.{field_def.name}"
                    )
                given.add(arg_name)
                self._check_value(
                    arg_node.value,
                    arg_def.type,
                    f"argument {arg_name!r} of {parent_type}.{field_def.name}",
                    location_has_default=arg_def.has_default,
                )
            for arg_def in field_def.arguments:
                if arg_def.type.is_non_null and not arg_def.has_default and arg_def.name not in given:
                    raise self._error(
                        f"field {parent_type}.{field_def.name} requires argument {arg_def.name!r}"
                    )
            node_signature = sorted(
                (a.name.value, print_ast(a.value)) for a in node.arguments or ()
            )
            if signature is not None and node_signature != signature:
                raise self._error(
                    f"field {field_def.name!r} is selected with conflicting arguments"
                )
            signature = node_signature

    # Output

    def _use_named_type(self, name: str):
        kind = self.schema.kind_of(name)
        if kind == "ENUM" and name not in self.enums:
            self.enums.append(name)
        elif kind == "SCALAR" and name not in BUILTIN_SCALARS and name not in self.scalars:
            self.scalars.append(name)

    def _collect_input_types(self) -> list[IRType]:
        """Input types reachable from the variables, dependencies first."""
        ordered: list[IRType] = []
        seen: set[str] = set()

        def walk(name: str):
            self._use_named_type(name)
            if self.schema.kind_of(name) != "INPUT_OBJECT" or name in seen:
                return
            seen.add(name)
            input_type = self.schema.inputs[name]
            for field_def in input_type.fields:
                if not self.schema.is_input_type(field_def.type_name):
                    raise self._error(
                        f"input field {name}.{field_def.name} has non-input type {field_def.type}"
                    )
                if field_def.default_value is not None:
                    self._check_value(
                        field_def.default_value,
                        field_def.type,
                        f"default value of {name}.{field_def.name}",
                        allow_variables=False,
                    )
                walk(field_def.type_name)
            ordered.append(input_type)

        for variable in self.variables.values():
            walk(variable.type.named_type)
        return ordered

    def _print_query(self) -> str:
        """Print the operation and the fragments it uses, with __typename injected."""
        injector = _TypenameInjector(self.abstract_selection_sets)
        parts = [print_ast(visit(self.operation, injector))]
        for name in self.used_fragments:
            parts.append(print_ast(visit(self.fragments[name], injector)))
        return "\n\n".join(parts)


def _same_nodes(a: list[FieldNode], b: list[FieldNode]) -> bool:
    return len(a) == len(b) and all(x is y for x, y in zip(a, b))


def _always_kept(directive: DirectiveNode) -> bool:
    """Whether a @skip or @include with a literal condition never drops its selection."""
    condition = next(
        (a.value for a in directive.arguments or () if a.name.value == "if"), None
    )
    if not isinstance(condition, BooleanValueNode):
        return False
    return condition.value == (directive.name.value == "include")
