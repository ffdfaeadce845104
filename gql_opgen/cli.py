"""Command-line interface for gql-opgen."""

import logging
import sys
from pathlib import Path

import click
from graphql import GraphQLSyntaxError

from .core.generator import BindingGenerator
from .core.hooks import AddHeaderHook, HookRunner
from .core.parser import SchemaParser, parse_operations


@click.group()
@click.version_option(package_name="gql-opgen")
def main():
    """GraphQL operation binding generator for Python.

    Generate typed async functions and pydantic models from GraphQL
    operations and a schema.
    """
    pass


@main.command()
@click.option(
    "--schema",
    "-s",
    required=True,
    type=click.Path(exists=True),
    help="Path to GraphQL schema file or directory.",
)
@click.option(
    "--operations",
    "-q",
    required=True,
    type=click.Path(exists=True),
    help="Path to a .graphql file or a directory of operation files.",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False),
    help="Output Python module (e.g., client.py).",
)
@click.option(
    "--template-dir",
    "-t",
    type=click.Path(exists=True, file_okay=False),
    help="Directory with a bindings.py.j2 overriding the built-in template.",
)
@click.option(
    "--header",
    help="Text added at the top of the generated module.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
def generate(
    schema: str,
    operations: str,
    output: str,
    template_dir: str | None,
    header: str | None,
    verbose: bool,
):
    """Generate Python bindings for GraphQL operations.

    Operations that fail validation are reported and skipped; bindings are
    still written for the rest, and the command exits with status 1.

    Examples:

        gql-opgen generate --schema ./schema --operations ./queries --output ./client.py

        gql-opgen generate -s schema.graphqls -q ops.graphql -o api.py --header "# noqa"
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    output_path = Path(output).resolve()

    if verbose:
        click.echo(f"Schema: {Path(schema).resolve()}")
        click.echo(f"Operations: {Path(operations).resolve()}")
        click.echo(f"Output: {output_path}")

    try:
        click.echo("Parsing schema...")
        ir = SchemaParser(schema).parse_all()
        click.echo("Parsing operations...")
        document = parse_operations(operations)
    except (FileNotFoundError, GraphQLSyntaxError) as e:
        raise click.ClickException(str(e)) from e

    if verbose:
        click.echo(f"  Types: {len(ir.types)}")
        click.echo(f"  Inputs: {len(ir.inputs)}")
        click.echo(f"  Enums: {len(ir.enums)}")
        click.echo(f"  Interfaces: {len(ir.interfaces)}")
        click.echo(f"  Unions: {len(ir.unions)}")
        click.echo(f"  Definitions: {len(document.definitions)}")

    hooks = HookRunner()
    if header:
        hooks.add_post_hook(AddHeaderHook(header))

    click.echo("Generating bindings...")
    generator = BindingGenerator(ir, document, template_dir=template_dir, hooks=hooks)
    result = generator.write(output_path)

    if verbose:
        for binding in result.bindings:
            click.echo(f"  {binding.operation_type} {binding.operation_name} -> {binding.function_name}()")
    for error in result.errors.values():
        click.echo(f"Error: {error}", err=True)

    click.echo(f"Done! Generated {len(result.bindings)} operation(s) in {output_path}")
    if result.errors:
        click.echo(f"{len(result.errors)} operation(s) failed validation", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
