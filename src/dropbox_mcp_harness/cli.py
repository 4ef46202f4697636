"""
Command line interface for the Dropbox MCP harness.

    dropbox-mcp-harness run            run the fifteen-step scenario
    dropbox-mcp-harness call TOOL      call a single tool and print the result
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .client import ToolClient
from .protocol import AuthRequired, StructuredResult
from .scenario import ScenarioContext, run_scenario, write_report
from .transport import ProcessCallTransport
from .utils.config import HarnessConfig, load_config
from .utils.errors import ConfigurationError, CredentialError, HarnessError
from .utils.logging import setup_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def server_options(func):
    """Options shared by every command that talks to the server."""
    options = [
        click.option("--config", "config_paths", multiple=True,
                     type=click.Path(dir_okay=False, path_type=Path),
                     help="Configuration file (JSON, YAML, TOML or .env). Repeatable."),
        click.option("--server-command", help="Executable that starts the MCP server (default: node)."),
        click.option("--server-arg", "server_args", multiple=True,
                     help="Argument for the server command (default: build/index.js). Repeatable."),
        click.option("--cwd", type=click.Path(file_okay=False, path_type=Path),
                     help="Working directory for the server process."),
        click.option("--token-file", type=click.Path(dir_okay=False, path_type=Path),
                     help="File holding the Dropbox access token (default: ./token)."),
        click.option("--timeout", type=float, help="Seconds to wait for each server process."),
        click.option("--log-level",
                     type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
                     help="Log level for stderr output."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_overrides(
    server_command: Optional[str] = None,
    server_args: Tuple[str, ...] = (),
    cwd: Optional[Path] = None,
    token_file: Optional[Path] = None,
    timeout: Optional[float] = None,
    log_level: Optional[str] = None,
    report: Optional[Path] = None,
) -> Dict[str, Any]:
    """Turn command line options into a configuration mapping."""
    overrides: Dict[str, Any] = {}

    server: Dict[str, Any] = {}
    if server_command:
        server["command"] = server_command
    if server_args:
        server["args"] = list(server_args)
    if cwd:
        server["cwd"] = cwd
    if timeout is not None:
        server["timeout"] = timeout
    if server:
        overrides["server"] = server

    if token_file:
        overrides["credentials"] = {"token_file": token_file}
    if log_level:
        overrides["logging"] = {"level": log_level.upper()}
    if report:
        overrides["report"] = {"path": report}

    return overrides


def build_client(config: HarnessConfig) -> ToolClient:
    transport = ProcessCallTransport(
        config.server.command,
        config.server.args,
        env=config.server.env,
        cwd=str(config.server.cwd) if config.server.cwd else None,
        timeout=config.server.timeout,
        terminate_grace=config.server.terminate_grace,
    )
    return ToolClient.from_config(transport, config.credentials)


async def prepare(config_paths, overrides: Dict[str, Any]) -> HarnessConfig:
    # log records go to stderr before the loader emits any
    setup_logging(log_level=overrides.get("logging", {}).get("level", "WARNING"))
    config = await load_config(list(config_paths), overrides)
    setup_logging(
        app_name=config.app_name,
        log_level=config.logging.level,
        log_dir=config.logging.directory,
        enable_json=config.logging.json_format,
    )
    return config


async def run_command(config_paths, overrides: Dict[str, Any], console: Console) -> int:
    try:
        config = await prepare(config_paths, overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(e.message)}")
        return EXIT_FATAL

    client = build_client(config)
    ctx = ScenarioContext(
        client=client,
        tokens=client.token_store,
        settings=config.scenario,
        console=console,
    )

    try:
        summary = await run_scenario(ctx)
    except CredentialError as e:
        console.print(f"[bold red]Fatal:[/bold red] {escape(e.message)}")
        for suggestion in e.get_suggestions():
            console.print(f"  {escape(suggestion)}")
        return EXIT_FATAL

    if config.report.path:
        path = await write_report(ctx, config.report.path)
        console.print(f"Report written to {path}")

    return EXIT_OK if summary.passed == summary.total else EXIT_FAILED


def parse_arguments(pairs: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse key=value pairs; values that are valid JSON are decoded."""
    arguments: Dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--arg")
        key, value = pair.split("=", 1)
        try:
            arguments[key] = json.loads(value)
        except json.JSONDecodeError:
            arguments[key] = value
    return arguments


async def call_command(config_paths, overrides: Dict[str, Any], tool: str,
                       arguments: Dict[str, Any], console: Console) -> int:
    try:
        config = await prepare(config_paths, overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(e.message)}")
        return EXIT_FATAL

    client = build_client(config)
    try:
        result = await client.call_tool(tool, arguments)
    except CredentialError as e:
        console.print(f"[bold red]Fatal:[/bold red] {escape(e.message)}")
        return EXIT_FATAL
    except HarnessError as e:
        console.print(f"[bold red]{e.code}:[/bold red] {escape(e.message)}")
        return EXIT_FAILED

    if isinstance(result, StructuredResult):
        console.print_json(json.dumps(result.value))
    else:
        console.print(result.payload, markup=False)

    return EXIT_FAILED if isinstance(result, AuthRequired) else EXIT_OK


@click.group()
@click.version_option(__version__, prog_name="dropbox-mcp-harness")
def main():
    """End-to-end harness for a Dropbox MCP server."""


@main.command()
@server_options
@click.option("--report", type=click.Path(dir_okay=False, path_type=Path),
              help="Write a JSON report of the run to this file.")
def run(config_paths, report, **options):
    """Run the fifteen-step Dropbox scenario."""
    overrides = build_overrides(report=report, **options)
    code = asyncio.run(run_command(config_paths, overrides, Console()))
    raise SystemExit(code)


@main.command()
@server_options
@click.argument("tool")
@click.option("-a", "--arg", "arg_pairs", multiple=True, metavar="KEY=VALUE",
              help="Tool argument; JSON values are decoded. Repeatable.")
def call(config_paths, tool, arg_pairs, **options):
    """Call a single TOOL and print its result."""
    arguments = parse_arguments(arg_pairs)
    overrides = build_overrides(**options)
    code = asyncio.run(call_command(config_paths, overrides, tool, arguments, Console()))
    raise SystemExit(code)


if __name__ == "__main__":
    main()
