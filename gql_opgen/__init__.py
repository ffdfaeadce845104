"""Typed async Python bindings for GraphQL operations."""

__version__ = "0.1.0"
