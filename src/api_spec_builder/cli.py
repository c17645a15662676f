"""CLI entry point for api-spec-builder."""

import importlib
import inspect
import logging
import sys
from pathlib import Path

import click

from api_spec_builder.builder.builder import Builder
from api_spec_builder.builder.errors import BuilderErrors
from api_spec_builder.document.encode import read_document, write_document


def _load_builder(target: str, app_dir: Path, version: str | None) -> Builder:
    """Resolve ``module:attribute`` to a Builder.

    The attribute may be a Builder or a callable returning one; a callable
    that accepts ``version`` receives ``--oas-version``.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="TARGET")

    if str(app_dir) not in sys.path:
        sys.path.insert(0, str(app_dir))
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="TARGET") from e

    obj = getattr(module, attr, None)
    if obj is None:
        raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="TARGET")

    if callable(obj) and not isinstance(obj, Builder):
        kwargs = {}
        if version and "version" in inspect.signature(obj).parameters:
            kwargs["version"] = version
        obj = obj(**kwargs)

    if not isinstance(obj, Builder):
        raise click.BadParameter(f"{target} is not a Builder", param_hint="TARGET")
    if version and obj.version != version:
        raise click.ClickException(f"{target} builds OAS {obj.version}, not {version}")
    return obj


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def main(verbose: bool):
    """API Spec Builder: build OpenAPI 2.0 / 3.x documents from Python types."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@main.command()
@click.argument("target")
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file (.json, .yaml or .yml).")
@click.option("--oas-version", envvar="API_SPEC_VERSION", default=None, help="Expected OpenAPI version of the document.")
@click.option("--app-dir", default=".", type=click.Path(path_type=Path), help="Directory added to the import path.")
def build(target: str, output: Path, oas_version: str | None, app_dir: Path):
    """Build the document described by TARGET (module:attribute) and write it."""
    builder = _load_builder(target, app_dir, oas_version)

    click.echo(f"Building OAS {builder.version} document from {target}...")
    try:
        doc = builder.build()
    except BuilderErrors as e:
        raise click.ClickException(str(e)) from e

    write_document(doc, output)
    click.echo(f"Document saved to {output}")


@main.command()
@click.argument("source")
@click.option("--app-dir", default=".", type=click.Path(path_type=Path), help="Directory added to the import path.")
def routes(source: str, app_dir: Path):
    """List the operations of SOURCE, a document file or a module:attribute target."""
    path = Path(source)
    if path.is_file():
        try:
            doc = read_document(path)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
        builder = Builder.from_document(doc)
    else:
        builder = _load_builder(source, app_dir, None)

    found = builder.routes()
    for route in found:
        kind = "webhook " if route.is_webhook else ""
        click.echo(f"{kind}{route.method:7} {route.path}  {route.operation_id or '-'}")
    click.echo(f"Found {len(found)} operations.")
