"""CLI entry point for doc-mcp."""

import logging
from pathlib import Path

import click

from doc_mcp.config import DocMcpConfig, load_config_file, merge_configs, resolve_config
from doc_mcp.errors import DocMcpError
from doc_mcp.instance import DocMcp
from doc_mcp.parser.loader import parse, parse_all

VERSION = "1.0.0"

LOG_FORMAT = "[doc-mcp] %(levelname)s %(name)s: %(message)s"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def _build_config(docs: tuple[str, ...], config_path: Path | None, base_path: str | None, verbose: bool) -> DocMcpConfig:
    """Config file options, overridden by command-line options, over environment variables."""
    options = load_config_file(config_path) if config_path else {}
    cli_options = {"docs": list(docs) or None, "base_path": base_path, "verbose": verbose or None}
    try:
        return resolve_config(merge_configs(options, cli_options))
    except DocMcpError as e:
        raise click.ClickException(str(e)) from e


def common_options(f):
    f = click.option("-v", "--verbose", is_flag=True, help="Enable verbose (debug) logging.")(f)
    f = click.option("-b", "--base-path", default=None, help="Base path for MCP endpoints (default: /mcp).")(f)
    f = click.option(
        "-c", "--config", "config_path", default=None,
        type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML config file.",
    )(f)
    return f


@click.group()
@click.version_option(VERSION, prog_name="doc-mcp")
def main():
    """doc-mcp: serve API documentation to MCP clients."""
    pass


@main.command()
@click.argument("docs", nargs=-1)
@click.option("-h", "--host", default="0.0.0.0", help="Host to bind to.")
@click.option("-p", "--port", default=3000, type=int, help="Port to listen on.")
@common_options
def serve(docs: tuple[str, ...], host: str, port: int, config_path: Path | None, base_path: str | None, verbose: bool):
    """Start a standalone MCP server for DOCS (files, globs or URLs)."""
    from doc_mcp.server.app import run_server

    config = _build_config(docs, config_path, base_path, verbose)
    _setup_logging(config.verbose)

    click.echo("Starting doc-mcp server...")
    click.echo(f"Documentation: {', '.join(config.docs)}")
    try:
        instance = DocMcp.from_config(config)
    except DocMcpError as e:
        raise click.ClickException(f"Failed to start server: {e}") from e

    base = f"http://{host}:{port}{config.base_path.rstrip('/')}"
    click.echo("\nMCP endpoints available:")
    for name in ("describe", "schemas", "endpoints", "auth", "sse"):
        click.echo(f"  GET {base}/{name}")
    click.echo("\nPress Ctrl+C to stop")

    run_server(instance, host=host, port=port)


@main.command()
@click.argument("docs", nargs=-1)
@common_options
@click.pass_context
def validate(ctx: click.Context, docs: tuple[str, ...], config_path: Path | None, base_path: str | None, verbose: bool):
    """Check that every documentation source parses."""
    config = _build_config(docs, config_path, base_path, verbose)
    _setup_logging(config.verbose)

    click.echo("Validating documentation files...\n")
    has_errors = False
    for doc in config.docs:
        try:
            _, parsed = parse_all([doc], config)
        except DocMcpError as e:
            click.echo(f"  {doc}: ❌ Invalid")
            click.echo(f"    Error: {e}")
            has_errors = True
            continue
        if not parsed:
            click.echo(f"  {doc}: ❌ No files matched")
            has_errors = True
        else:
            click.echo(f"  {doc}: ✅ Valid ({len(parsed)} file{'s' if len(parsed) != 1 else ''})")

    click.echo("")
    if has_errors:
        click.echo("Validation completed with errors.")
        ctx.exit(1)
    click.echo("All files validated successfully.")


@main.command()
@click.argument("docs", nargs=-1)
@common_options
def inspect(docs: tuple[str, ...], config_path: Path | None, base_path: str | None, verbose: bool):
    """Display a summary of the parsed documentation."""
    config = _build_config(docs, config_path, base_path, verbose)
    _setup_logging(config.verbose)

    try:
        schema = parse(config.docs, config)
    except DocMcpError as e:
        raise click.ClickException(f"Failed to inspect: {e}") from e

    metadata = schema.metadata
    click.echo("=== API Summary ===\n")
    click.echo(f"Title: {metadata.title}")
    click.echo(f"Version: {metadata.version}")
    click.echo(f"Description: {metadata.description or '(none)'}")
    click.echo(f"Source type: {schema.source.type}")
    click.echo(f"Parsed at: {schema.source.parsed_at.isoformat()}")

    click.echo("\n=== Servers ===\n")
    for server in metadata.servers or []:
        suffix = f" ({server.description})" if server.description else ""
        click.echo(f"  - {server.url}{suffix}")
    if not metadata.servers:
        click.echo("  (none)")

    click.echo("\n=== Endpoints ===\n")
    click.echo(f"Total: {len(schema.endpoints)}\n")
    for endpoint in schema.endpoints:
        params = f" [{len(endpoint.parameters)} params]" if endpoint.parameters else ""
        deprecated = " (deprecated)" if endpoint.deprecated else ""
        click.echo(f"  {endpoint.method:<7} {endpoint.path}{params}{deprecated}")
        if endpoint.summary:
            click.echo(f"          {endpoint.summary}")

    click.echo("\n=== Schemas ===\n")
    click.echo(f"Total: {len(schema.schemas)}")
    for name in schema.schemas:
        click.echo(f"  - {name}")

    click.echo("\n=== Resources ===\n")
    click.echo(f"Total: {len(schema.resources)}")

    click.echo("\n=== Authentication ===\n")
    for name, scheme in schema.auth.schemes.items():
        click.echo(f"  - {name}: {scheme.type}")
    if not schema.auth.schemes:
        click.echo("  No authentication required")


if __name__ == "__main__":
    main()
