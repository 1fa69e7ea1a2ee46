"""CLI entry point for RPC Bridge."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import click

from .config import Config
from .exceptions import RpcBridgeError
from .methods import RpcMethod
from .providers import InjectedSocketProvider
from .transports import IpcTransport
from .utils import configure_logging


def _parse_param(value: str) -> Any:
    """CLI params are JSON when they parse as JSON, plain strings otherwise."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _resolve_ipc_path(config: Config, ipc_path: Optional[str]) -> Path:
    path = Path(ipc_path) if ipc_path else config.transport.ipc_path
    if path is None:
        raise click.UsageError("No IPC socket given. Use --ipc-path or set RPC_BRIDGE_TRANSPORT__IPC_PATH.")
    return path


def _load_batch_file(batch_file: Path) -> List[RpcMethod]:
    with open(batch_file) as f:
        try:
            entries = json.load(f)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Batch file is not valid JSON: {e}", param_hint="BATCH_FILE") from e
    if not isinstance(entries, list):
        raise click.BadParameter("Batch file must contain a JSON array.", param_hint="BATCH_FILE")
    try:
        return [RpcMethod(entry["method"], entry.get("params", [])) for entry in entries]
    except (KeyError, TypeError, AttributeError) as e:
        raise click.BadParameter(f"Every batch entry needs a 'method' field: {e}", param_hint="BATCH_FILE") from e


async def _call(config: Config, path: Path, method: str, params: List[Any]) -> Any:
    async with IpcTransport(path, config.transport) as transport:
        provider = InjectedSocketProvider(transport, config)
        return await provider.send(method, params)


async def _batch(config: Config, path: Path, methods: List[RpcMethod]) -> List[Any]:
    async with IpcTransport(path, config.transport) as transport:
        provider = InjectedSocketProvider(transport, config)
        # No module context on the command line.
        return await provider.send_batch(methods, None)


def _run(coro) -> Any:
    try:
        return asyncio.run(coro)
    except RpcBridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="RPC_BRIDGE_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO)."
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format."
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """RPC Bridge - JSON-RPC calls over a node's IPC socket."""
    try:
        cfg = Config.from_file(Path(config_file)) if config_file else Config()
    except (OSError, ValueError) as e: # pydantic's ValidationError is a ValueError
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    configure_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.argument("method")
@click.argument("params", nargs=-1)
@click.option("--ipc-path", "-p", type=click.Path(dir_okay=False), help="Path of the node's IPC socket.")
@click.pass_context
def call(ctx: click.Context, method: str, params: tuple, ipc_path: Optional[str]) -> None:
    """Calls METHOD with PARAMS and prints the result as JSON."""
    config: Config = ctx.obj["config"]
    path = _resolve_ipc_path(config, ipc_path)
    result = _run(_call(config, path, method, [_parse_param(p) for p in params]))
    click.echo(json.dumps(result, indent=2))


@cli.command()
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--ipc-path", "-p", type=click.Path(dir_okay=False), help="Path of the node's IPC socket.")
@click.pass_context
def batch(ctx: click.Context, batch_file: Path, ipc_path: Optional[str]) -> None:
    """Sends every entry of BATCH_FILE as one JSON-RPC batch and prints the responses."""
    config: Config = ctx.obj["config"]
    path = _resolve_ipc_path(config, ipc_path)
    methods = _load_batch_file(batch_file)
    responses = _run(_batch(config, path, methods))
    click.echo(json.dumps(responses, indent=2))


if __name__ == "__main__":
    cli()
