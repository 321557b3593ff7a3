"""CLI main entry point."""

import asyncio
import json
import sys

import click

from . import __version__
from .config import get_config_path, load_config, save_config, unset_config
from .errors import (
    ApplyError,
    CommandError,
    ConfigError,
    InvalidCommandError,
    TokenUnavailableError,
)
from .formatters import print_config_sources
from .kubectl import Kubectl
from .logging import configure_logging, get_logger
from .rbac import (
    BindingTarget,
    apply_cluster_role_binding,
    cluster_role_binding_manifest,
    render_manifest,
)
from .runner import CommandRequest, DefaultRunner
from .token import TokenPoller

VERBOSITY_LEVELS = {1: "info", 2: "debug"}


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--kubeconfig", type=click.Path(), help="Path to kubeconfig file")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Write logs to this file instead of stderr")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: int,
    json_output: bool,
    kubeconfig: str | None,
    log_file: str | None,
) -> None:
    """kubectl helpers for e2e suites."""
    ctx.ensure_object(dict)

    # Logs go to stderr or --log-file; stdout is reserved for command output.
    # With --json, log events are JSON too.
    configure_logging(
        VERBOSITY_LEVELS.get(min(verbose, 2), "warning"),
        log_file=log_file,
        json_output=json_output,
    )
    config = load_config()
    if not verbose and config.log_level != "warning":
        configure_logging(config.log_level, log_file=log_file, json_output=json_output)

    if kubeconfig:
        config.kubeconfig = kubeconfig
        config._sources["kubeconfig"] = "flag"

    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output
    ctx.obj["logger"] = get_logger("kubeutil")
    ctx.obj["kubectl"] = Kubectl.from_config(config, runner=ctx.obj.get("runner"))


@cli.command()
@click.argument("name")
@click.option("--role", required=True, help="ClusterRole to bind")
@click.option("-n", "--namespace", required=True, help="ServiceAccount namespace")
@click.option("--service-account", "service_account", required=True, help="ServiceAccount name")
@click.option("--dry-run", is_flag=True, help="Print the manifest instead of applying it")
@click.pass_context
def bind(
    ctx: click.Context,
    name: str,
    role: str,
    namespace: str,
    service_account: str,
    dry_run: bool,
) -> None:
    """Apply a ClusterRoleBinding for a ServiceAccount (idempotent)."""
    if dry_run:
        target = BindingTarget(name, role, namespace, service_account)
        click.echo(render_manifest(cluster_role_binding_manifest(target)), nl=False)
        return

    try:
        output = asyncio.run(
            apply_cluster_role_binding(
                name,
                role,
                namespace,
                service_account,
                kubectl=ctx.obj["kubectl"],
                logger=ctx.obj["logger"],
            )
        )
    except ApplyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"name": name, "output": output.strip()}, indent=2))
    else:
        click.echo(output, nl=False)


@cli.command()
@click.argument("namespace")
@click.argument("service_account")
@click.option("-t", "--timeout", type=float, help="Seconds to keep polling (default: config)")
@click.option("--interval", type=float, help="Seconds between attempts (default: config)")
@click.pass_context
def token(
    ctx: click.Context,
    namespace: str,
    service_account: str,
    timeout: float | None,
    interval: float | None,
) -> None:
    """Print a token for a ServiceAccount, polling until one is issued."""
    config = ctx.obj["config"]
    logger = ctx.obj["logger"]

    def report(attempt: int, error: Exception) -> None:
        logger.debug("token attempt failed", attempt=attempt, error=str(error))

    try:
        poller = TokenPoller(
            kubectl=ctx.obj["kubectl"],
            interval_seconds=interval if interval is not None else config.poll_interval,
            logger=logger,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        issued = asyncio.run(
            poller.wait_for_token(
                namespace,
                service_account,
                timeout=timeout if timeout is not None else config.token_timeout,
                on_attempt=report,
            )
        )
    except TokenUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"token": issued}))
    else:
        click.echo(issued)


@cli.command("exec", context_settings={"ignore_unknown_options": True})
@click.option("-t", "--timeout", type=float, help="Kill the command after this many seconds")
@click.option("--cwd", type=click.Path(exists=True, file_okay=False), help="Working directory")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def exec_command(
    ctx: click.Context,
    timeout: float | None,
    cwd: str | None,
    command: tuple[str, ...],
) -> None:
    """Run a command through the runner and print its stdout.

    Use -- to separate the command from kubeutil options:

        kubeutil exec -- kubectl get pods -o json
    """
    runner = ctx.obj.get("runner") or DefaultRunner()
    request = CommandRequest(args=command, cwd=cwd)

    async def _run() -> str:
        return await asyncio.wait_for(runner.run(request, logger=ctx.obj["logger"]), timeout)

    try:
        output = asyncio.run(_run())
    except (CommandError, InvalidCommandError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except asyncio.TimeoutError:
        click.echo(f"Error: {request.command_line()!r} timed out after {timeout}s", err=True)
        sys.exit(1)

    click.echo(output, nl=False)


@cli.command()
def version() -> None:
    """Show version."""
    click.echo(f"kubeutil version {__version__}")


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show effective configuration and where each value came from."""
    loaded = ctx.obj["config"]

    if ctx.obj["json_output"]:
        data = {
            "values": loaded.to_dict(),
            "sources": {key: loaded.get_source(key) for key in loaded.to_dict()},
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_config_sources(loaded)


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value."""
    try:
        save_config(key, value)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Set {key} = {value}")


@config.command("unset")
@click.argument("key")
def config_unset(key: str) -> None:
    """Remove a persisted configuration value."""
    try:
        removed = unset_config(key)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if removed:
        click.echo(f"Unset {key}")
    else:
        click.echo(f"{key} was not set")


@config.command("path")
def config_path() -> None:
    """Show the config file location."""
    click.echo(str(get_config_path()))


def main() -> None:
    """Main entry point."""
    cli(obj={})
