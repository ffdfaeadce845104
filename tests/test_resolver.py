"""Tests for the type resolver."""

import pytest
from graphql import FieldNode, OperationDefinitionNode, parse

from gql_opgen.core.errors import ValidationError
from gql_opgen.core.ir import TypeRef
from gql_opgen.core.parser import SchemaParser
from gql_opgen.core.resolver import TypeResolver, is_type_subtype


def _keys(fields):
    return [f.response_key for f in fields]


def _selection_names(selection_set):
    return [s.name.value for s in selection_set.selections if isinstance(s, FieldNode)]


class TestResolveFields:
    """Tests for plain object selections."""

    def test_fields_in_selection_order(self, resolve):
        op = resolve("query GetMe { me { name id email } }")
        assert op.name == "GetMe"
        assert op.operation_type == "query"
        me = op.selection.fields[0]
        assert me.response_key == "me"
        assert str(me.type) == "User"
        assert _keys(me.selection.fields) == ["name", "id", "email"]
        assert str(me.selection.fields[0].type) == "String!"

    def test_alias_becomes_response_key(self, resolve):
        op = resolve("query GetMe { me { userId: id } }")
        field = op.selection.fields[0].selection.fields[0]
        assert field.response_key == "userId"
        assert field.name == "id"

    def test_repeated_fields_merge(self, resolve):
        op = resolve("query GetMe { me { id owner: friends { id } owner: friends { name } } }")
        friends = op.selection.fields[0].selection.fields[1]
        assert _keys(friends.selection.fields) == ["id", "name"]

    def test_typename_field(self, resolve):
        op = resolve("query GetMe { me { __typename id } }")
        typename = op.selection.fields[0].selection.fields[0]
        assert typename.response_key == "__typename"
        assert str(typename.type) == "String!"

    def test_scalars_and_enums_collected(self, resolve):
        op = resolve("query GetMe { me { role createdAt } }")
        assert [e.name for e in op.enums] == ["Role"]
        assert op.scalars == ["DateTime"]


class TestResolveAbstract:
    """Tests for interface and union selections."""

    def test_interface_variants(self, resolve, get_node):
        op = resolve(get_node)
        node = op.selection.fields[0].selection
        assert node.is_abstract
        assert node.possible_types == ["User", "Bot"]
        assert _keys(node.fields) == ["id"]
        assert _keys(node.variants["User"]) == ["id", "name", "email"]
        assert _keys(node.variants["Bot"]) == ["id", "name", "owner"]
        assert node.variants["User"][0].inherited
        assert not node.variants["User"][1].inherited

    def test_typename_injected_into_query_text(self, resolve, get_node):
        op = resolve(get_node)
        document = parse(op.query_text)
        operation = document.definitions[0]
        node = operation.selection_set.selections[0]
        assert _selection_names(node.selection_set)[0] == "__typename"
        # Concrete positions are left alone
        assert "__typename" not in _selection_names(operation.selection_set)

    def test_typename_not_duplicated(self, resolve):
        op = resolve("query Find { search(text: \"a\") { __typename ... on User { id } } }")
        assert op.query_text.count("__typename") == 1

    def test_shapes_do_not_gain_typename(self, resolve, get_node):
        op = resolve(get_node)
        node = op.selection.fields[0].selection
        assert "__typename" not in _keys(node.fields)

    def test_fragment_covering_all_types_is_unconditioned(self, resolve):
        op = resolve('query Q { node(id: "1") { ... on Node { id } } }')
        node = op.selection.fields[0].selection
        assert _keys(node.fields) == ["id"]
        assert node.variants["Bot"][0].inherited

    def test_union_members(self, resolve):
        op = resolve("""
            query Find($text: String!) {
              search(text: $text) {
                __typename
                ... on User { id name }
                ... on Bot { id }
              }
            }
        """)
        search = op.selection.fields[0]
        assert str(search.type) == "[SearchResult!]!"
        assert _keys(search.selection.fields) == ["__typename"]
        assert _keys(search.selection.variants["User"]) == ["__typename", "id", "name"]
        assert _keys(search.selection.variants["Bot"]) == ["__typename", "id"]

    def test_named_fragments(self, resolve):
        op = resolve("""
            query GetNode { node(id: "1") { ...BotParts ...UserParts } }
            fragment UserParts on User { id name }
            fragment BotParts on Bot { id owner { ...UserParts } }
            fragment Unused on User { email }
        """)
        assert op.fragments == ["BotParts", "UserParts"]
        assert "fragment UserParts on User" in op.query_text
        assert "fragment BotParts on Bot" in op.query_text
        assert "Unused" not in op.query_text
        node = op.selection.fields[0].selection
        assert _keys(node.variants["User"]) == ["id", "name"]
        owner = node.variants["Bot"][1]
        assert _keys(owner.selection.fields) == ["id", "name"]

    def test_same_key_with_different_types_per_variant(self):
        schema_sdl = """
            interface Thing { id: ID! }
            type A implements Thing { id: ID! size: Int }
            type B implements Thing { id: ID! size: String }
            type Query { thing: Thing }
        """
        other = SchemaParser().parse_source(schema_sdl)

        document = parse("query Q { thing { ... on A { size } ... on B { size } } }")
        # Each variant sees only its own `size`, so this is fine
        operations, errors = TypeResolver(other).resolve_document(document)
        assert not errors
        variants = operations[0].selection.fields[0].selection.variants
        assert str(variants["A"][0].type) == "Int"
        assert str(variants["B"][0].type) == "String"

    def test_common_and_variant_leaf_types_must_agree(self):
        other = SchemaParser().parse_source("""
            interface Thing { size: Int }
            type A implements Thing { size: Int! }
            type B implements Thing { size: Int }
            type Query { thing: Thing }
        """)
        document = parse("query Q { thing { size ... on A { size } } }")
        _, errors = TypeResolver(other).resolve_document(document)
        assert "resolves to Int on Thing but to Int! on A" in str(errors["Q"])


class TestResolveVariables:
    """Tests for variables and input types."""

    def test_variables_in_declaration_order(self, resolve):
        op = resolve("""
            query ListUsers($limit: Int = 5, $order: SortOrder = DESC) {
              users(filter: {limit: $limit, order: $order}) { id }
            }
        """)
        assert [v.name for v in op.variables] == ["limit", "order"]
        assert op.variables[0].default_literal == "5"
        assert op.variables[1].default_literal == "DESC"
        assert op.variables[0].default_value == 5

    def test_input_types_dependency_order(self):
        schema = SchemaParser().parse_source("""
            input Outer { inner: Inner name: String }
            input Inner { size: Int }
            type Query { find(where: Outer): Int }
        """)
        document = parse("query Find($where: Outer) { find(where: $where) }")
        operations, errors = TypeResolver(schema).resolve_document(document)
        assert not errors
        assert [t.name for t in operations[0].input_types] == ["Inner", "Outer"]

    def test_enums_reachable_from_inputs(self, resolve):
        op = resolve("""
            mutation CreateUser($input: CreateUserInput!) {
              createUser(input: $input) { id }
            }
        """)
        assert [t.name for t in op.input_types] == ["CreateUserInput"]
        assert [e.name for e in op.enums] == ["Role"]

    def test_self_referencing_input(self, resolve):
        op = resolve("query ListUsers($filter: UserFilter) { users(filter: $filter) { id } }")
        assert [t.name for t in op.input_types] == ["UserFilter"]
        assert [e.name for e in op.enums] == ["Role", "SortOrder"]

    def test_upload_scalar_recorded(self, resolve):
        op = resolve("mutation Up($input: UploadInput!) { uploadBatch(input: $input) }")
        assert op.scalars == ["Upload"]
        assert [t.name for t in op.input_types] == ["UploadInput"]

    def test_nullable_variable_with_default_in_non_null_position(self, resolve):
        op = resolve('query GetNode($id: ID = "1") { node(id: $id) { id } }')
        assert op.variables[0].has_default

    def test_list_variable(self, resolve):
        op = resolve("query GetNodes($ids: [ID!]!) { nodes(ids: $ids) { id } }")
        assert str(op.variables[0].type) == "[ID!]!"


class TestValidationErrors:
    """Operations that do not match the schema."""

    @pytest.mark.parametrize(
        "text, message",
        [
            ("{ me { id } }", "must be named"),
            ("subscription S { me { id } }", "subscriptions are not supported"),
            ("query Q { me { nope } }", "Cannot query field 'nope'"),
            ("query Q { me }", "must have a selection of subfields"),
            ("query Q { me { id { x } } }", "cannot have a selection of subfields"),
            ("query Q { me { friends(last: 1) { id } } }", "unknown argument 'last'"),
            ("query Q { node { id } }", "requires argument 'id'"),
            ("query Q { node(id: true) { id } }", "not a valid ID value"),
            ("query Q { node(id: $id) { id } }", "variable $id is not defined"),
            ("query Q($id: ID!) { me { id } }", "declared but never used"),
            ("query Q($id: String!) { node(id: $id) { id } }", "cannot be used where ID! is expected"),
            ("query Q($id: ID) { node(id: $id) { id } }", "nullable variable $id"),
            ("query Q($u: User) { me { id } }", "non-input type"),
            ("query Q($id: ID!, $id: ID!) { node(id: $id) { id } }", "declared more than once"),
            ("query Q { me { ...Missing } }", "unknown fragment 'Missing'"),
            ("query Q { me { ... on Bot { id } } }", "can never apply to User"),
            ("query Q { me { x: id x: name } }", "are different fields"),
            ('query Q { search(text: "a") { id } }', "Cannot query field 'id' on type 'SearchResult'"),
            ('query Q($l: Int = "ten") { users(filter: {limit: $l}) { id } }', "not a valid Int value"),
            ("query Q($o: SortOrder = UP) { users(filter: {order: $o}) { id } }", "not a value of enum SortOrder"),
            ("mutation M { createUser(input: {email: \"a\"}) { id } }", "required field CreateUserInput.name"),
            ("mutation M { createUser(input: {name: \"a\", age: 3}) { id } }", "'age' is not defined"),
            ("query Q { me { friends(first: 1) { id } friends(first: 2) { id } } }", "conflicting arguments"),
        ],
    )
    def test_rejected(self, resolve, text, message):
        with pytest.raises(ValidationError) as exc_info:
            resolve(text)
        assert message in str(exc_info.value)

    def test_recursive_fragment(self, resolve):
        with pytest.raises(ValidationError, match="spreads itself"):
            resolve("""
                query Q { me { ...A } }
                fragment A on User { friends { ...A } }
            """)

    def test_error_carries_operation_name(self, resolve):
        with pytest.raises(ValidationError) as exc_info:
            resolve("query Broken { me { nope } }")
        assert exc_info.value.operation == "Broken"
        assert str(exc_info.value).startswith("Broken: ")

    def test_bad_schema_default(self):
        schema = SchemaParser().parse_source("""
            input Page { size: Int = "big" }
            type Query { items(page: Page): [Int] }
        """)
        document = parse("query Items($page: Page) { items(page: $page) }")
        _, errors = TypeResolver(schema).resolve_document(document)
        assert "default value of Page.size" in str(errors["Items"])

    def test_missing_root_type(self):
        schema = SchemaParser().parse_source("type Query { a: Int }")
        _, errors = TypeResolver(schema).resolve_document(parse("mutation M { a }"))
        assert "mutation root type" in str(errors["M"])


class TestResolveDocument:
    """Tests for TypeResolver.resolve_document."""

    def test_failures_do_not_stop_other_operations(self, schema):
        document = parse("""
            query Good { me { id } }
            query Bad { me { nope } }
            query AlsoGood { me { name } }
        """)
        operations, errors = TypeResolver(schema).resolve_document(document)
        assert [o.name for o in operations] == ["Good", "AlsoGood"]
        assert list(errors) == ["Bad"]

    def test_resolve_single(self, schema, get_node):
        document = parse(get_node)
        operation = next(d for d in document.definitions if isinstance(d, OperationDefinitionNode))
        resolved = TypeResolver(schema).resolve(operation)
        assert resolved.name == "GetNode"


class TestIsTypeSubtype:
    """Tests for variable/location type compatibility."""

    def test_non_null_fits_nullable(self):
        assert is_type_subtype(TypeRef.non_null(TypeRef.named("ID")), TypeRef.named("ID"))

    def test_nullable_does_not_fit_non_null(self):
        assert not is_type_subtype(TypeRef.named("ID"), TypeRef.non_null(TypeRef.named("ID")))

    def test_list_structure_must_match(self):
        assert not is_type_subtype(TypeRef.named("ID"), TypeRef.list_of(TypeRef.named("ID")))
        assert is_type_subtype(
            TypeRef.list_of(TypeRef.non_null(TypeRef.named("ID"))),
            TypeRef.list_of(TypeRef.named("ID")),
        )


class TestDirectives:
    """Tests for @skip, @include and schema-declared directives."""

    def test_variable_used_only_in_directive(self, resolve):
        op = resolve("query Me($withEmail: Boolean!) { me { id email @include(if: $withEmail) } }")
        assert [v.name for v in op.variables] == ["withEmail"]
        assert "@include(if: $withEmail)" in op.query_text

    @pytest.mark.parametrize("directive", ["@include(if: $flag)", "@skip(if: $flag)"])
    def test_conditional_field(self, resolve, directive):
        op = resolve(f"query Me($flag: Boolean!) {{ me {{ id email {directive} }} }}")
        fields = op.selection.fields[0].selection.fields
        assert [f.conditional for f in fields] == [False, True]

    @pytest.mark.parametrize("directive", ["@include(if: true)", "@skip(if: false)"])
    def test_literal_condition_that_keeps_the_field(self, resolve, directive):
        op = resolve(f"query Me {{ me {{ name {directive} }} }}")
        assert not op.selection.fields[0].selection.fields[0].conditional

    def test_unconditional_selection_wins(self, resolve):
        op = resolve("query Me($flag: Boolean!) { me { name @skip(if: $flag) name } }")
        assert not op.selection.fields[0].selection.fields[0].conditional

    def test_conditional_inline_fragment(self, resolve):
        op = resolve("""
            query Me($flag: Boolean!) {
              me { id ... @include(if: $flag) { name email } }
            }
        """)
        fields = op.selection.fields[0].selection.fields
        assert [(f.response_key, f.conditional) for f in fields] == [
            ("id", False), ("name", True), ("email", True),
        ]

    def test_conditional_fragment_spread(self, resolve):
        op = resolve("""
            query Me($flag: Boolean!) { me { id ...Contact @skip(if: $flag) } }
            fragment Contact on User { email }
        """)
        fields = op.selection.fields[0].selection.fields
        assert [(f.response_key, f.conditional) for f in fields] == [
            ("id", False), ("email", True),
        ]

    def test_conditional_common_field_inherited_by_variants(self, resolve):
        op = resolve('query Me4 { node(id: "1") { id @skip(if: true) ... on User { name } } }')
        node = op.selection.fields[0].selection
        assert node.fields[0].conditional
        user_id, name = node.variants["User"]
        assert user_id.inherited and user_id.conditional
        assert not name.conditional

    def test_conditional_variant_field(self, resolve):
        op = resolve("""
            query GetNode($id: ID!, $flag: Boolean!) {
              node(id: $id) { id ... on User @include(if: $flag) { name } ... on Bot { name } }
            }
        """)
        node = op.selection.fields[0].selection
        assert node.variants["User"][1].conditional
        assert not node.variants["Bot"][1].conditional

    def test_schema_directive_accepted(self):
        schema = SchemaParser().parse_source("""
            directive @cached(ttl: Int) on FIELD | QUERY
            type Query { a: Int b: Int }
        """)
        document = parse("query Q @cached(ttl: 60) { a @cached b @cached(ttl: 5) }")
        operations, errors = TypeResolver(schema).resolve_document(document)
        assert not errors
        # Only @skip and @include make a field optional
        assert not any(f.conditional for f in operations[0].selection.fields)

    def test_repeatable_directive(self):
        schema = SchemaParser().parse_source("""
            directive @tag(name: String!) repeatable on FIELD
            type Query { a: Int }
        """)
        document = parse('query Q { a @tag(name: "x") @tag(name: "y") }')
        _, errors = TypeResolver(schema).resolve_document(document)
        assert not errors

    def test_directive_on_fragment_definition(self):
        schema = SchemaParser().parse_source("""
            directive @client on FRAGMENT_DEFINITION
            type Query { a: Int }
        """)
        document = parse("query Q { ...F } fragment F on Query @client { a }")
        _, errors = TypeResolver(schema).resolve_document(document)
        assert not errors

    @pytest.mark.parametrize(
        "text, message",
        [
            ("query Q { me { id @bogus(x: 1) } }", "unknown directive @bogus on field 'id' of User"),
            ("query Q @skip(if: true) { me { id } }", "directive @skip may not be used on query Q"),
            ("query Q { me { id @include } }", "directive @include requires argument 'if'"),
            ("query Q { me { id @skip(if: true, when: 1) } }", "unknown argument 'when' on directive @skip"),
            ("query Q { me { id @skip(if: 1) } }", "not a valid Boolean value"),
            ("query Q { me { id @skip(if: true) @skip(if: false) } }", "used more than once"),
            ("query Q($f: Boolean) { me { id @skip(if: $f) } }", "nullable variable $f"),
            ("query Q($f: String!) { me { id @skip(if: $f) } }", "cannot be used where Boolean! is expected"),
            ("query Q { me { id @skip(if: $f) } }", "variable $f is not defined"),
            ("query Q { me { ... @bogus { id } } }", "unknown directive @bogus on inline fragment on User"),
            ("query Q { me { ...F @bogus } } fragment F on User { id }", "spread of fragment 'F'"),
            ("query Q { me { ...F } } fragment F on User @skip(if: true) { id }", "may not be used on fragment 'F'"),
        ],
    )
    def test_rejected(self, resolve, text, message):
        with pytest.raises(ValidationError) as exc_info:
            resolve(text)
        assert message in str(exc_info.value)

    def test_misplaced_schema_directive(self):
        schema = SchemaParser().parse_source("""
            directive @deprecated(reason: String) on FIELD_DEFINITION
            type Query { a: Int }
        """)
        _, errors = TypeResolver(schema).resolve_document(parse("query Q { a @deprecated }"))
        assert "directive @deprecated may not be used on field 'a' of Query" in str(errors["Q"])

    def test_variable_definition_directive(self):
        schema = SchemaParser().parse_source("""
            directive @note(text: String) on VARIABLE_DEFINITION
            type Query { a(x: Int): Int }
        """)
        resolver = TypeResolver(schema)
        _, errors = resolver.resolve_document(parse('query Q($x: Int @note(text: "n")) { a(x: $x) }'))
        assert not errors
        _, errors = resolver.resolve_document(parse("query Q($x: Int @skip(if: true)) { a(x: $x) }"))
        assert "directive @skip may not be used on variable $x" in str(errors["Q"])


class TestDuplicateOperations:
    """Operation names must be unique within a document."""

    def test_first_operation_wins(self, schema):
        document = parse("""
            query GetMe { me { id } }
            query GetMe { me { name } }
        """)
        operations, errors = TypeResolver(schema).resolve_document(document)
        assert [o.name for o in operations] == ["GetMe"]
        assert _keys(operations[0].selection.fields[0].selection.fields) == ["id"]
        assert "defined more than once" in str(errors["GetMe"])

    def test_first_failure_is_kept(self, schema):
        document = parse("""
            query GetMe { me { nope } }
            query GetMe { me { id } }
        """)
        operations, errors = TypeResolver(schema).resolve_document(document)
        assert operations == []
        assert "Cannot query field 'nope'" in str(errors["GetMe"])
