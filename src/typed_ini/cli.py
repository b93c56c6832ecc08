"""Command-line interface: ``typed-ini show|export|validate``."""

from __future__ import annotations

import json
import sys
from decimal import Decimal
from typing import Any

import click
from loguru import logger as loguru_logger

from ._document import KeyValue
from ._engine import IniEngine
from ._serializer import OutputMode
from ._settings import EngineSettings
from ._types import IniError
from ._validator import parse_requirements


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _parse_vars(pairs: tuple[str, ...]) -> dict[str, str]:
    bindings: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got {pair!r}", param_hint="--var")
        bindings[name] = value
    return bindings


def _build_engine(variables: tuple[str, ...], verbose: bool) -> IniEngine:
    loguru_logger.remove()
    loguru_logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")
    return IniEngine(EngineSettings.load(), bindings=_parse_vars(variables))


@click.group("typed-ini")
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline details to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Typed INI configuration tools."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command("show")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--var", "variables", multiple=True, metavar="NAME=VALUE", help="Bind $NAME.")
@click.option("--expand-env/--no-expand-env", default=None, help="Expand %NAME% placeholders.")
@click.option("--encoding", default=None, help="Source file encoding.")
@click.option("--types", "show_types", is_flag=True, help="Include the inferred kind per value.")
@click.pass_context
def show_cli(
    ctx: click.Context,
    path: str,
    variables: tuple[str, ...],
    expand_env: bool | None,
    encoding: str | None,
    show_types: bool,
) -> None:
    """Print the resolved document as JSON.

    Examples:\n
        typed-ini show app.ini\n
        typed-ini show app.ini --var root=/srv --types\n
    """
    try:
        engine = _build_engine(variables, ctx.obj["verbose"])
        document = engine.load(path, encoding=encoding, expand_environment=expand_env)
    except (IniError, ValueError) as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    if show_types:
        payload: dict[str, Any] = {
            name: {
                entry_name: (
                    {"kind": entry.kind.value, "value": entry.value, "raw": entry.raw}
                    if isinstance(entry, KeyValue)
                    else {"comment": entry.text}
                )
                for entry_name, entry in section.items()
            }
            for name, section in document.items()
        }
    else:
        payload = document.flatten(include_unexpanded=False)
    click.echo(json.dumps(payload, indent=2, default=_json_default))


@main.command("export")
@click.argument("source", type=click.Path(dir_okay=False))
@click.argument("target", type=click.Path(dir_okay=False))
@click.option(
    "--mode",
    type=click.Choice([m.value for m in OutputMode]),
    default=OutputMode.unexpanded.value,
    show_default=True,
)
@click.option("--var", "variables", multiple=True, metavar="NAME=VALUE", help="Bind $NAME.")
@click.option("--encoding", default=None, help="Target file encoding.")
@click.option("--append", is_flag=True, help="Append instead of replacing.")
@click.option("--force", is_flag=True, help="Overwrite an existing target.")
@click.pass_context
def export_cli(
    ctx: click.Context,
    source: str,
    target: str,
    mode: str,
    variables: tuple[str, ...],
    encoding: str | None,
    append: bool,
    force: bool,
) -> None:
    """Read SOURCE and write it to TARGET."""
    try:
        engine = _build_engine(variables, ctx.obj["verbose"])
        document = engine.load(source)
        written = engine.dump(
            document, target, mode, encoding=encoding, append=append, force=force
        )
    except (IniError, ValueError) as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.echo(str(written))


@main.command("validate")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--require",
    "requirements",
    multiple=True,
    required=True,
    metavar="SECTION[.KEY]",
    help="Section or key that must be present.",
)
@click.pass_context
def validate_cli(ctx: click.Context, path: str, requirements: tuple[str, ...]) -> None:
    """Check that required sections and keys are present."""
    try:
        engine = _build_engine((), ctx.obj["verbose"])
        document = engine.load(path)
    except (IniError, ValueError) as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    gaps = engine.validate(document, parse_requirements(requirements))
    for gap in gaps:
        click.echo(gap.message)
    if gaps:
        sys.exit(1)
    click.echo("OK")


if __name__ == "__main__":
    main()
