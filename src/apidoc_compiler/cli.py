"""CLI entry point for apidoc-compiler."""

import logging
from pathlib import Path

import click

from apidoc_compiler.assembler import OpenAPIDocument, assemble
from apidoc_compiler.config import OPENAPI_VERSION, AssemblerOptions
from apidoc_compiler.declarations import build_registry, load_declarations
from apidoc_compiler.errors import ApiDocError
from apidoc_compiler.parser.comment import parse_doc
from apidoc_compiler.registry import RouteRegistry
from apidoc_compiler.serializer import render


def _compile(decl_path: Path, patterns: tuple[str, ...], openapi_version: str) -> tuple[OpenAPIDocument, RouteRegistry]:
    """Load declarations and assemble them, turning failures into click errors."""
    try:
        decl = load_declarations(decl_path)
        registry = build_registry(decl, patterns)
        options = AssemblerOptions(openapi_version=openapi_version, description=decl.description)
        document = assemble(decl.title, decl.version, registry.entries, registry.schemas, options)
    except ApiDocError as e:
        raise click.ClickException(str(e)) from e
    return document, registry


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log parser and assembler warnings.")
def main(verbose: bool):
    """apidoc-compiler: build OpenAPI documents from endpoint documentation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("decl_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the document here instead of stdout.")
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output encoding.")
@click.option("--route", "routes", multiple=True, help='Only include matching routes, e.g. "GET /users/*". Repeatable.')
@click.option("--openapi-version", default=OPENAPI_VERSION, envvar="APIDOC_OPENAPI_VERSION", show_default=True, help="Value of the top-level 'openapi' field.")
def build(decl_path: Path, output: Path | None, fmt: str, routes: tuple[str, ...], openapi_version: str):
    """Assemble the OpenAPI document for a declaration file."""
    document, _ = _compile(decl_path, routes, openapi_version)
    text = render(document, fmt)

    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"OpenAPI document saved to {output}")


@main.command()
@click.argument("decl_path", type=click.Path(exists=True, path_type=Path))
def check(decl_path: Path):
    """Report documentation warnings without writing a document."""
    document, registry = _compile(decl_path, (), OPENAPI_VERSION)

    count = 0
    for entry in registry.entries:
        for w in entry.doc.warnings:
            click.echo(f"warning: {entry.method} {entry.path_template} line {w.line}: {w.message}")
            count += 1
    for message in document.warnings:
        click.echo(f"warning: {message}")
        count += 1

    click.echo(f"{len(registry)} routes, {len(document.schemas)} schemas, {count} warnings.")


@main.command("parse-doc")
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
def parse_doc_command(doc_path: Path):
    """Print the structured form of one documentation block."""
    doc = parse_doc(doc_path.read_text(encoding="utf-8"))
    click.echo(doc.model_dump_json(indent=2))
