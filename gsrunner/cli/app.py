"""Typer application for the gsrunner developer CLI."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

import typer
import yaml

from gsrunner.config import ConfigStore
from gsrunner.exceptions import RunnerError
from gsrunner.registry import RpcRegistry, load_registry_file

app = typer.Typer(help="gsrunner service bootstrap utilities.", no_args_is_help=True)
registry_app = typer.Typer(help="Service registry file utilities.", no_args_is_help=True)
config_app = typer.Typer(help="Configuration file utilities.", no_args_is_help=True)
app.add_typer(registry_app, name="registry")
app.add_typer(config_app, name="config")


def _registry_table(items: Mapping[str, int]) -> str:
    headers = ["Name", "Id"]
    rows = [[name, str(items[name])] for name in sorted(items, key=lambda n: (items[n], n))]
    if not rows:
        return ""

    widths = [len(column) for column in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    header_line = " | ".join(header.ljust(widths[idx]) for idx, header in enumerate(headers))
    divider = "-+-".join("-" * widths[idx] for idx in range(len(headers)))
    body_lines = [
        " | ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, divider, *body_lines])


@registry_app.command("check")
def registry_check(
    path: Path = typer.Argument(..., help="Registry file to validate."),
    json_output: bool = typer.Option(False, "--json", help="Print entries as a JSON object."),
) -> None:
    """Validate a registry file and list its entries."""

    try:
        items = load_registry_file(path, RpcRegistry())
    except RunnerError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    if json_output:
        typer.echo(json.dumps(items, indent=2, sort_keys=True))
        return
    table = _registry_table(items)
    if table:
        typer.echo(table)
    typer.echo(f"{len(items)} entries ok: {path}")


@config_app.command("show")
def config_show(
    path: Path = typer.Argument(..., help="JSON config file."),
    output_format: str = typer.Option(
        "json",
        "--format",
        case_sensitive=False,
        help="Output format (json or yaml).",
    ),
) -> None:
    """Print the flattened keys of a JSON config file."""

    fmt = output_format.lower()
    if fmt not in {"json", "yaml"}:
        raise typer.BadParameter("format must be json or yaml", param_hint="--format")

    store = ConfigStore()
    try:
        store.load_json(path)
    except RunnerError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    values = {key: store.get(key) for key in store.keys()}
    if fmt == "yaml":
        typer.echo(yaml.safe_dump(values, sort_keys=False, allow_unicode=True).rstrip())
    else:
        typer.echo(json.dumps(values, indent=2))


def main() -> None:
    app()
