"""GraphQL schema and operation parsing using graphql-core.

Parses SDL (.graphqls/.graphql files or strings) into an IRSchema, and
operation documents into a single graphql-core DocumentNode.
"""

import logging
import os

from graphql import (
    DirectiveDefinitionNode,
    DocumentNode,
    EnumTypeDefinitionNode,
    EnumTypeExtensionNode,
    GraphQLSyntaxError,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    SchemaDefinitionNode,
    UnionTypeDefinitionNode,
    UnionTypeExtensionNode,
    parse,
)

from .ir import (
    IRArgument,
    IRDirective,
    IREnum,
    IREnumValue,
    IRField,
    IRInterface,
    IRScalar,
    IRSchema,
    IRType,
    IRUnion,
    TypeRef,
)

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".graphqls", ".graphql")
OPERATION_EXTENSIONS = (".graphql", ".gql")


def collect_files(path: str, extensions: tuple[str, ...]) -> list[str]:
    """Collect files with the given extensions from a file or directory path."""
    files = []
    if os.path.isfile(path):
        if path.endswith(extensions):
            files.append(path)
    else:
        for root, _, filenames in os.walk(path):
            for filename in filenames:
                if filename.endswith(extensions):
                    files.append(os.path.join(root, filename))
    return sorted(files)


def _description(node) -> str | None:
    return node.description.value if getattr(node, "description", None) else None


class SchemaParser:
    """Parses GraphQL schema files into IR."""

    def __init__(self, schema_path: str | None = None):
        """Initialize a parser with a path to a schema file or directory."""
        self.schema_path = schema_path
        self.ir = IRSchema()
        self.current_file = ""

    def parse_all(self) -> IRSchema:
        """Parse all schema files and return the complete IR."""
        if self.schema_path is None:
            raise ValueError("SchemaParser was created without a schema path")
        schema_files = collect_files(self.schema_path, SCHEMA_EXTENSIONS)
        if not schema_files:
            raise FileNotFoundError(f"No schema files found at {self.schema_path}")

        for file_path in schema_files:
            self.current_file = os.path.basename(file_path)
            with open(file_path) as f:
                content = f.read()
            try:
                self._process_ast(parse(content))
            except GraphQLSyntaxError:
                logger.error("Error parsing %s", self.current_file)
                raise
        return self.ir

    def parse_source(self, sdl: str) -> IRSchema:
        """Parse an SDL string and return the IR."""
        self.current_file = "<string>"
        self._process_ast(parse(sdl))
        return self.ir

    def _process_ast(self, ast: DocumentNode):
        """Process GraphQL AST and populate IR."""
        for definition in ast.definitions:
            if isinstance(definition, SchemaDefinitionNode):
                self._process_schema_definition(definition)
            elif isinstance(definition, ScalarTypeDefinitionNode):
                self._process_scalar(definition)
            elif isinstance(definition, (EnumTypeDefinitionNode, EnumTypeExtensionNode)):
                self._process_enum(definition)
            elif isinstance(definition, (InterfaceTypeDefinitionNode, InterfaceTypeExtensionNode)):
                self._process_interface(definition)
            elif isinstance(definition, (ObjectTypeDefinitionNode, ObjectTypeExtensionNode)):
                self._process_object_type(definition)
            elif isinstance(
                definition, (InputObjectTypeDefinitionNode, InputObjectTypeExtensionNode)
            ):
                self._process_input_type(definition)
            elif isinstance(definition, (UnionTypeDefinitionNode, UnionTypeExtensionNode)):
                self._process_union(definition)
            elif isinstance(definition, DirectiveDefinitionNode):
                self._process_directive(definition)
        logger.debug(
            "Parsed %s: %d types, %d inputs, %d interfaces, %d unions",
            self.current_file,
            len(self.ir.types),
            len(self.ir.inputs),
            len(self.ir.interfaces),
            len(self.ir.unions),
        )

    def _process_schema_definition(self, node: SchemaDefinitionNode):
        for op_type in node.operation_types:
            name = op_type.type.name.value
            if op_type.operation.value == "query":
                self.ir.query_type = name
            elif op_type.operation.value == "mutation":
                self.ir.mutation_type = name
            else:
                self.ir.subscription_type = name

    def _process_scalar(self, node: ScalarTypeDefinitionNode):
        name = node.name.value
        self.ir.scalars[name] = IRScalar(name=name, description=_description(node))

    def _process_enum(self, node):
        name = node.name.value
        values = [
            IREnumValue(name=v.name.value, description=_description(v))
            for v in node.values or ()
        ]
        if name in self.ir.enums:
            existing = self.ir.enums[name]
            known = set(existing.value_names)
            existing.values.extend(v for v in values if v.name not in known)
            return
        self.ir.enums[name] = IREnum(name=name, values=values, description=_description(node))

    def _process_interface(self, node):
        name = node.name.value
        fields = self._process_fields(node.fields or ())
        interfaces = [i.name.value for i in node.interfaces or ()]
        if name in self.ir.interfaces:
            existing = self.ir.interfaces[name]
            self._merge_fields(existing.fields, fields)
            existing.interfaces.extend(i for i in interfaces if i not in existing.interfaces)
            return
        self.ir.interfaces[name] = IRInterface(
            name=name,
            fields=fields,
            interfaces=interfaces,
            description=_description(node),
        )

    def _process_object_type(self, node):
        """Process object type definitions and 'extend type' definitions.

        Either may arrive first; fields from both are merged into one type.
        """
        name = node.name.value
        fields = self._process_fields(node.fields or ())
        interfaces = [i.name.value for i in node.interfaces or ()]

        if name in self.ir.types:
            existing = self.ir.types[name]
            self._merge_fields(existing.fields, fields)
            existing.interfaces.extend(i for i in interfaces if i not in existing.interfaces)
            if _description(node):
                existing.description = _description(node)
        else:
            self.ir.types[name] = IRType(
                name=name,
                fields=fields,
                interfaces=interfaces,
                description=_description(node),
            )

    def _process_input_type(self, node):
        name = node.name.value
        fields = self._process_fields(node.fields or ())
        if name in self.ir.inputs:
            self._merge_fields(self.ir.inputs[name].fields, fields)
            return
        self.ir.inputs[name] = IRType(
            name=name,
            fields=fields,
            description=_description(node),
            is_input=True,
        )

    def _process_union(self, node):
        name = node.name.value
        members = [t.name.value for t in node.types or ()]
        if name in self.ir.unions:
            existing = self.ir.unions[name]
            existing.types.extend(t for t in members if t not in existing.types)
            return
        self.ir.unions[name] = IRUnion(name=name, types=members, description=_description(node))

    def _process_directive(self, node: DirectiveDefinitionNode):
        name = node.name.value
        self.ir.directives[name] = IRDirective(
            name=name,
            locations=[loc.value for loc in node.locations],
            arguments=self._process_arguments(node.arguments),
            repeatable=node.repeatable,
            description=_description(node),
        )

    @staticmethod
    def _merge_fields(existing: list[IRField], extra: list[IRField]):
        """Append fields not already present, keeping declaration order."""
        existing_names = {f.name for f in existing}
        for field in extra:
            if field.name not in existing_names:
                existing.append(field)
                existing_names.add(field.name)

    def _process_fields(self, field_nodes) -> list[IRField]:
        """Process field or input-value definitions into an IRField list."""
        fields = []
        for node in field_nodes:
            fields.append(
                IRField(
                    name=node.name.value,
                    type=TypeRef.from_node(node.type),
                    description=_description(node),
                    arguments=self._process_arguments(getattr(node, "arguments", None)),
                    default_value=getattr(node, "default_value", None),
                )
            )
        return fields

    @staticmethod
    def _process_arguments(argument_nodes) -> list[IRArgument]:
        return [
            IRArgument(
                name=arg_node.name.value,
                type=TypeRef.from_node(arg_node.type),
                default_value=arg_node.default_value,
                description=_description(arg_node),
            )
            for arg_node in argument_nodes or ()
        ]


def parse_operations(path: str) -> DocumentNode:
    """Parse every operation file under `path` into one document."""
    definitions = []
    for file_path in collect_files(path, OPERATION_EXTENSIONS):
        with open(file_path) as f:
            content = f.read()
        try:
            document = parse(content)
        except GraphQLSyntaxError:
            logger.error("Error parsing %s", os.path.basename(file_path))
            raise
        definitions.extend(document.definitions)
    return DocumentNode(definitions=tuple(definitions))
