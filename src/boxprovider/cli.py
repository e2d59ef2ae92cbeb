"""boxprovider CLI.

Offline tooling around declaration files. Nothing here talks to the API.

Usage:
    boxprovider validate resources.yaml   # Validate declarations
    boxprovider options resources.yaml    # Preview create option structs
    boxprovider show-config               # Effective configuration
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import click

from .api import label
from .config import Config, ConfigurationError
from .lifecycle import build_create_options
from .logs import setup_logging
from .provider import get_resource
from .spec_loader import SpecLoadError, load_declarations

logger = logging.getLogger(__name__)


def load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return label(value) if isinstance(value, Enum) else value


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.option("--text-logs", is_flag=True, help="Plain text logs instead of JSON.")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, text_logs: bool) -> None:
    """Reconcile Brightbox resource declarations."""
    config = load_config()
    setup_logging(log_level or config.log_level, json_output=config.json_logs and not text_logs)
    ctx.obj = config


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(path: Path) -> None:
    """Validate a declaration file."""
    try:
        declarations = load_declarations(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    for declaration in declarations:
        click.echo(f"ok  {declaration.kind}.{declaration.name}")
    click.secho(f"{len(declarations)} declarations valid", fg="green")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def options(config: Config, path: Path) -> None:
    """Print the create request each declaration would send."""
    try:
        declarations = load_declarations(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    failed = False
    output = []
    for declaration in declarations:
        resource = get_resource(declaration.kind, config)
        if resource.descriptor is None:
            continue
        data = resource.new_data(config=declaration.to_config())
        opts, diags = build_create_options(resource.descriptor, data)
        failed = failed or diags.has_error()
        for diag in diags:
            click.secho(f"{declaration.kind}.{declaration.name}: {diag}", fg="red", err=True)
        output.append(
            {
                "kind": declaration.kind,
                "name": declaration.name,
                "options": _jsonable(opts.to_dict()),
            }
        )

    click.echo(json.dumps(output, indent=2))
    if failed:
        raise click.ClickException("Some declarations produced errors")


@main.command("show-config")
@click.pass_obj
def show_config(config: Config) -> None:
    """Print the effective configuration, secrets masked."""
    click.echo(
        json.dumps(
            {
                "auth": config.auth.redacted(),
                "timeouts": {
                    "create": config.timeouts.create,
                    "read": config.timeouts.read,
                    "update": config.timeouts.update,
                    "delete": config.timeouts.delete,
                },
                "minimum_refresh_wait_seconds": config.minimum_refresh_wait_seconds,
                "maximum_refresh_wait_seconds": config.maximum_refresh_wait_seconds,
                "log_level": config.log_level,
                "json_logs": config.json_logs,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
