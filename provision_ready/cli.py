"""CLI entry point for provision-ready."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click

from provision_ready import __version__
from provision_ready.config.settings import AgentConfig, load_config
from provision_ready.utils.logging import configure_logging, get_logger
from provision_ready.utils.result import ExitCode, exit_code_for


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config: AgentConfig) -> None:
        self.config = config
        self.logger = get_logger("cli")

    def resolve_endpoint(self, endpoint: Optional[str]) -> AgentConfig:
        """Config for this command, exiting with a config error on a bad --endpoint."""
        result = self.config.with_endpoint(endpoint)
        if result.is_err():
            error = result.unwrap_err()
            self.logger.error("config_invalid", error=str(error))
            sys.exit(exit_code_for(error))
        return result.unwrap()


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Optional YAML file overriding the built-in defaults",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    Provisioning readiness agent.

    Fetches the goal state from the WireServer and reports this instance
    ready for its incarnation.
    """
    result = load_config(config_path)
    if result.is_err():
        error = result.unwrap_err()
        configure_logging(level=log_level or "info", format_type=log_format or "text")
        get_logger("cli").error("config_invalid", error=str(error))
        ctx.exit(exit_code_for(error))
    config = result.unwrap()

    configure_logging(
        level=log_level or config.logging.level,
        format_type=log_format or config.logging.format,
    )
    ctx.obj = Context(config=config)


@cli.command(name="report-ready")
@click.option(
    "--endpoint",
    default=None,
    help="WireServer base URL (defaults to http://168.63.129.16)",
)
@pass_context
def report_ready_command(ctx: Context, endpoint: Optional[str]) -> None:
    """Fetch the goal state and report this instance ready."""
    from provision_ready.agent.orchestrator import run_provisioning

    code = run_provisioning(ctx.resolve_endpoint(endpoint))
    if code != ExitCode.SUCCESS:
        sys.exit(code)
    ctx.logger.info("exiting", exit_code=code)


@cli.command(name="goal-state")
@click.option(
    "--endpoint",
    default=None,
    help="WireServer base URL (defaults to http://168.63.129.16)",
)
@pass_context
def goal_state_command(ctx: Context, endpoint: Optional[str]) -> None:
    """Fetch and print the goal state without reporting readiness."""
    from provision_ready.agent.orchestrator import ProvisioningAgent

    agent = ProvisioningAgent(config=ctx.resolve_endpoint(endpoint))
    result = agent.read_goal_state()
    if result.is_err():
        error = result.unwrap_err()
        ctx.logger.error("goal_state_failed", error=str(error))
        sys.exit(exit_code_for(error))

    output_json(result.unwrap().to_dict())


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.UNEXPECTED_ERROR)


if __name__ == "__main__":
    main()
