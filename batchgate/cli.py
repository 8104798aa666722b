"""
CLI interface for batchgate.

Provides commands to validate, plan and run batch files against a method
registry loaded from a Python module ("package.module:attribute").

Batch files are JSON (or YAML) documents in mapping or list form.
"""

import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from batchgate import __version__


def _load_batch(batch_file: str):
    from batchgate.utils import load_batch_file

    try:
        return load_batch_file(Path(batch_file))
    except ValueError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)


def _get_config(ctx):
    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


def _build_gateway(ctx, methods: str, grouping: str | None = None):
    from dataclasses import replace

    from batchgate.gateway import Gateway
    from batchgate.invoker import RegistryInvoker

    config = _get_config(ctx)
    if grouping:
        config = replace(config, grouping=grouping)

    try:
        invoker = RegistryInvoker.from_module(methods, timeout=config.invoke_timeout)
    except (ImportError, ValueError) as e:
        click.echo(f"✗ Cannot load methods from {methods}: {e}", err=True)
        raise SystemExit(1)

    return Gateway(invoker, config)


@click.group()
@click.version_option(version=__version__, prog_name="batchgate")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to config.yaml (default: $BATCHGATE_CONFIG or ~/.config/batchgate/config.yaml)")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def main(ctx, config_path, log_level):
    """
    batchgate - Batch request gateway.

    Run batches of named sub-calls with dependencies as concurrent stages.
    """
    from batchgate.config import load_config
    from batchgate.errors import ConfigError
    from batchgate.utils import setup_logging

    ctx.ensure_object(dict)
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        # init can still run without a valid config
        ctx.obj["config_error"] = str(e)
        return

    ctx.obj["config"] = config
    setup_logging(
        log_level=log_level or config.logging.level,
        log_format=config.logging.format,
        log_file=Path(config.logging.file).expanduser() if config.logging.file else None,
    )


@main.command("run")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--methods", "methods", required=True, help="Method registry as module:attribute")
@click.option("--grouping", type=click.Choice(["level", "signature"]), default=None,
              help="Override the configured grouping strategy")
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indent")
@click.pass_context
def run(ctx, batch_file: str, methods: str, grouping: str | None, indent: int):
    """
    Run a batch file and print the assembled JSON response.

    Examples:

        batchgate run batch.json --methods myapp.api:METHODS

        batchgate run batch.json --methods myapp.api:register --grouping signature
    """
    body = _load_batch(batch_file)
    gateway = _build_gateway(ctx, methods, grouping)

    response = gateway.handle_sync(body)
    click.echo(response.to_json(indent=indent))
    if not response.ok:
        raise SystemExit(1)


@main.command("plan")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--grouping", type=click.Choice(["level", "signature"]), default=None,
              help="Override the configured grouping strategy")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON instead of a table")
@click.pass_context
def plan(ctx, batch_file: str, grouping: str | None, as_json: bool):
    """Show the execution stages of a batch file without running it."""
    import json

    from batchgate.errors import GatewayError
    from batchgate.grouper import group
    from batchgate.schemas import BatchDocument
    from batchgate.validator import validate

    config = _get_config(ctx)
    body = _load_batch(batch_file)

    try:
        document = BatchDocument.parse(body)
    except GatewayError as e:
        click.echo(f"✗ {e.status_code} {e.message}", err=True)
        raise SystemExit(1)

    error = validate(document, config.policy)
    if error is not None:
        click.echo(f"✗ {error.status_code} {error.message}", err=True)
        raise SystemExit(1)

    strategy = grouping or config.grouping
    execution_plan = group(document, strategy)

    if as_json:
        output = {
            "strategy": strategy,
            **execution_plan.to_dict(),
            "calls": {call.name: call.to_dict() for call in document},
        }
        click.echo(json.dumps(output, indent=2, default=str))
        return

    table = Table(title=f"Execution plan ({strategy})")
    table.add_column("Stage", justify="right")
    table.add_column("Sub-call")
    table.add_column("Method")
    table.add_column("Depends on")
    for index, stage in enumerate(execution_plan):
        for name in stage:
            call = document[name]
            table.add_row(str(index), name, call.method, ", ".join(sorted(call.dependencies)))

    Console(file=sys.stdout, width=120).print(table)


@main.command("validate")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate_cmd(ctx, batch_file: str):
    """Validate a batch file against the configured policy."""
    from batchgate.validator import validate_body

    config = _get_config(ctx)
    body = _load_batch(batch_file)

    error = validate_body(body, config.policy)
    if error is not None:
        click.echo(f"✗ {error.status_code} {error.message}", err=True)
        raise SystemExit(1)

    count = len(body) if body else 0
    click.echo(f"✓ Batch is valid ({count} sub-calls)")


@main.command("methods")
@click.option("--methods", "methods", required=True, help="Method registry as module:attribute")
@click.pass_context
def methods_cmd(ctx, methods: str):
    """List the methods exposed through the gateway."""
    gateway = _build_gateway(ctx, methods)
    verb, path, name = gateway.route
    click.echo(f"{name}: {verb.upper()} /{path}\n")
    click.echo(gateway.describe())


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize batchgate configuration."""
    from batchgate.config import GatewayConfig, get_batchgate_home

    home = get_batchgate_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    cfg_path.write_text(yaml.safe_dump(GatewayConfig().to_dict(), sort_keys=False))
    click.echo(f"Initialized batchgate config at {cfg_path}")


if __name__ == "__main__":
    main()
