"""Shared fixtures for gql-opgen tests."""

import pytest
from graphql import parse

from gql_opgen.core.parser import SchemaParser
from gql_opgen.core.resolver import TypeResolver

SCHEMA_SDL = '''
scalar DateTime
scalar Upload

enum Role {
  ADMIN
  MEMBER
}

enum SortOrder {
  ASC
  DESC
}

interface Node {
  id: ID!
}

"A person using the service"
type User implements Node {
  id: ID!
  name: String!
  email: String
  role: Role!
  createdAt: DateTime
  friends(first: Int = 10): [User!]!
}

type Bot implements Node {
  id: ID!
  name: String!
  owner: User
}

union SearchResult = User | Bot

input UserFilter {
  role: Role
  nameContains: String
  limit: Int = 20
  order: SortOrder = ASC
  nested: UserFilter
}

input CreateUserInput {
  name: String!
  email: String
  role: Role = MEMBER
}

input UploadInput {
  files: [Upload!]!
  description: String
}

type Query {
  node(id: ID!): Node
  nodes(ids: [ID!]!): [Node]!
  users(filter: UserFilter): [User!]!
  search(text: String!): [SearchResult!]!
  me: User
}

type Mutation {
  createUser(input: CreateUserInput!): User!
  uploadFiles(files: [Upload!]!): Int!
  uploadBatch(input: UploadInput!): Int!
}
'''

GET_NODE = """
query GetNode($id: ID!) {
  node(id: $id) {
    id
    ... on User {
      name
      email
    }
    ... on Bot {
      name
      owner {
        id
      }
    }
  }
}
"""


@pytest.fixture
def schema():
    return SchemaParser().parse_source(SCHEMA_SDL)


@pytest.fixture
def resolve(schema):
    """Resolve the single operation of a document, with its fragments."""
    resolver = TypeResolver(schema)

    def _resolve(text: str):
        operations, errors = resolver.resolve_document(parse(text))
        if errors:
            raise next(iter(errors.values()))
        assert len(operations) == 1
        return operations[0]

    return _resolve


@pytest.fixture
def get_node():
    return GET_NODE
