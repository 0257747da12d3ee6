"""
Agent Config Guard — CLI entrypoint.

Usage:
    python -m src.main --help
    python -m src.main deps llm gpt_a
    python -m src.main check tool lookup_customer
    python -m src.main validate
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from src import __version__
from src.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


def _load(ctx: click.Context) -> dict:
    """Load the descriptor named by --config, or exit with a message."""
    from src.core.config.loader import ConfigError, load_descriptor

    try:
        return load_descriptor(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="configguard")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to the agent descriptor (default: auto-detect agent_config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Agent Config Guard — reference integrity for agent descriptors."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.command()
@click.argument("component_type")
@click.argument("key")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deps(ctx: click.Context, component_type: str, key: str, as_json: bool) -> None:
    """List the components that reference COMPONENT_TYPE KEY."""
    from src.core.references.catalog import section_path
    from src.core.references.dependencies import find_dependencies

    document = _load(ctx)
    records = find_dependencies(document, component_type, key)

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in records], indent=2))
        return

    if section_path(component_type) is None:
        click.secho(f"⚠️  Unknown component type '{component_type}'", fg="yellow")
        return

    if not records:
        click.secho(f'✅ Nothing references {component_type} "{key}"', fg="green")
        return

    click.secho(f'\n🔗 {component_type} "{key}" is referenced by:', fg="cyan", bold=True)
    for record in records:
        click.echo(f"   {record.describe()}")
    click.echo()


@cli.command()
@click.argument("component_type")
@click.argument("key")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, component_type: str, key: str, as_json: bool) -> None:
    """Check whether COMPONENT_TYPE KEY can be deleted."""
    from src.core.services.deletion import check_deletion

    document = _load(ctx)
    result = check_deletion(document, component_type, key)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.allowed else 1)
        return

    if not result.known_type:
        click.secho(f"⚠️  Unknown component type '{component_type}', not checked", fg="yellow")
        return

    if result.allowed:
        click.secho(f'✅ {component_type} "{key}" can be deleted', fg="green")
        return

    assert result.diagnostic is not None
    click.secho(f'❌ Cannot delete {component_type} "{key}"', fg="red", bold=True)
    click.echo(f"   {result.diagnostic.message}")
    if result.diagnostic.details:
        click.echo()
        for line in result.diagnostic.details.splitlines():
            click.echo(f"   {line}" if line else "")
    sys.exit(1)


@cli.command()
@click.argument("component_type")
@click.argument("key")
@click.pass_context
def delete(ctx: click.Context, component_type: str, key: str) -> None:
    """Delete COMPONENT_TYPE KEY and print the resulting descriptor.

    The descriptor file itself is not modified.
    """
    from src.core.references.catalog import get_section
    from src.core.serialization.yaml_document import dump_document
    from src.core.services.deletion import deletable_section
    from src.core.services.notifications import NotificationCenter
    from src.core.use_cases.safe_delete import attempt_delete

    document = _load(ctx)
    notifier = NotificationCenter()

    def remove() -> None:
        path = deletable_section(component_type)
        section = get_section(document, path) if path else None
        if section is None or key not in section:
            raise LookupError(f"{component_type} '{key}' does not exist")
        del section[key]

    outcome = attempt_delete(component_type, key, remove, document=document, notifier=notifier)

    for note in notifier.drain():
        color = "red" if note.is_error else "green"
        click.secho(("❌ " if note.is_error else "✅ ") + note.message, fg=color, err=True)
        if note.details:
            click.echo(note.details, err=True)

    if not outcome.ok:
        sys.exit(1)

    click.echo(dump_document(document), nl=False)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, as_json: bool) -> None:
    """Check that every reference in the descriptor resolves."""
    from src.core.services.deletion import validate_document

    document = _load(ctx)
    error = validate_document(document)

    if as_json:
        click.echo(json.dumps({"valid": error is None, "error": error}, indent=2))
        sys.exit(0 if error is None else 1)
        return

    if error is None:
        click.secho("✅ All references resolve", fg="green", bold=True)
        return

    click.secho(f"❌ {error}", fg="red")
    sys.exit(1)


@cli.command()
@click.pass_context
def render(ctx: click.Context) -> None:
    """Print the descriptor with anchors and aliases."""
    from src.core.serialization.yaml_document import DocumentSerializationError, dump_document

    document = _load(ctx)
    try:
        click.echo(dump_document(document), nl=False)
    except DocumentSerializationError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def main() -> None:
    """Entry point for the ``configguard`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
