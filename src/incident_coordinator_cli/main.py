"""Main CLI entry point with command definitions."""

import click
import asyncio
from typing import Any, Awaitable, Callable, Optional

from .client import (
    ConnectionError as CoordinatorUnreachable,
    CoordinatorClient,
    CoordinatorClientError,
    InvalidTransitionError,
    NotFoundError,
)
from .config import SETTINGS, Config, ConfigError, normalize_key
from .ui import (
    console,
    print_error,
    print_success,
    print_info,
    format_incident,
    print_audit_table,
)

SEVERITIES = ["LOW", "MEDIUM", "HIGH", "CRITICAL"]


def mask_secret(key: str, value: str) -> str:
    if normalize_key(key) != "api_key":
        return value
    return "*" * 8 + value[-4:] if len(value) > 4 else "****"


def resolve_connection(config: Config, url: Optional[str], api_key: Optional[str]):
    """Command-line options win over the config file and environment."""
    coordinator_url = url or config.get("coordinator_url")
    auth_key = api_key or config.get("api_key")

    if not coordinator_url:
        raise ConfigError(
            "Coordinator URL not configured. "
            "Run: incident-coordinator config set coordinator-url <url>"
        )
    return coordinator_url, auth_key


def resolve_responder(config: Config, responder: Optional[str]) -> str:
    name = responder or config.get("responder")
    if not name:
        raise ConfigError(
            "Responder not given. Use --responder or "
            "run: incident-coordinator config set responder <name>"
        )
    return name


async def with_client(
    url: Optional[str],
    api_key: Optional[str],
    action: Callable[[CoordinatorClient, Config], Awaitable[Any]],
):
    """Open a client from config and run one command against it, reporting errors."""
    try:
        config = Config()
        coordinator_url, auth_key = resolve_connection(config, url, api_key)

        async with CoordinatorClient(base_url=coordinator_url, api_key=auth_key) as client:
            await action(client, config)

    except ConfigError as e:
        print_error(str(e))
    except InvalidTransitionError as e:
        print_error(f"{e} (current state: {e.current_state})")
    except NotFoundError as e:
        print_error(str(e))
    except CoordinatorUnreachable as e:
        print_error(
            str(e), hint="Check the URL with: incident-coordinator config get coordinator-url"
        )
    except CoordinatorClientError as e:
        print_error(str(e))


connection_options = [
    click.option("--url", help="Coordinator URL (overrides config)"),
    click.option("--api-key", help="API key (overrides config)"),
]


def with_connection_options(func):
    for option in reversed(connection_options):
        func = option(func)
    return func


@click.group()
@click.version_option(package_name="incident-coordinator")
def cli():
    """Incident Coordinator CLI - report and drive incidents through their lifecycle."""
    pass


@cli.command()
@click.argument("title")
@click.option(
    "--severity",
    type=click.Choice(SEVERITIES, case_sensitive=False),
    required=True,
    help="Initial impact classification",
)
@click.option("--reported-by", help="Reporter (defaults to configured responder)")
@click.option("--systems", default=1, type=click.IntRange(min=1), help="Number of affected systems")
@click.option("--description", help="Detailed description")
@with_connection_options
def report(
    title: str,
    severity: str,
    reported_by: Optional[str],
    systems: int,
    description: Optional[str],
    url: Optional[str],
    api_key: Optional[str],
):
    """Report a new incident."""

    async def action(client: CoordinatorClient, config: Config):
        reporter = resolve_responder(config, reported_by)
        incident = await client.report_incident(
            title=title,
            severity=severity,
            reported_by=reporter,
            affected_systems_count=systems,
            description=description,
        )
        print_success(
            f"Incident reported: {incident['id']} (priority {incident['priority']})"
        )

    asyncio.run(with_client(url, api_key, action))


@cli.command()
@click.argument("incident_id")
@with_connection_options
def show(incident_id: str, url: Optional[str], api_key: Optional[str]):
    """Show details of a specific incident."""

    async def action(client: CoordinatorClient, config: Config):
        incident = await client.get_incident(incident_id)
        console.print(format_incident(incident))

    asyncio.run(with_client(url, api_key, action))


@cli.command()
@click.argument("incident_id")
@with_connection_options
def history(incident_id: str, url: Optional[str], api_key: Optional[str]):
    """Show the audit trail of an incident, newest first."""

    async def action(client: CoordinatorClient, config: Config):
        entries = await client.get_audit_history(incident_id)
        print_audit_table(entries)

    asyncio.run(with_client(url, api_key, action))


def _transition_command(name: str, action_name: str, help_text: str):
    @cli.command(name=name, help=help_text)
    @click.argument("incident_id")
    @click.option("--responder", help="Who performs the action (defaults to config)")
    @with_connection_options
    def command(
        incident_id: str,
        responder: Optional[str],
        url: Optional[str],
        api_key: Optional[str],
    ):
        async def action(client: CoordinatorClient, config: Config):
            who = resolve_responder(config, responder)
            incident = await client.transition(incident_id, action_name, who)
            print_success(f"Incident {incident['id']} is now {incident['state']}")

        asyncio.run(with_client(url, api_key, action))

    return command


ack = _transition_command("ack", "acknowledge", "Acknowledge an incident and take ownership.")
investigate = _transition_command("investigate", "investigate", "Start investigating an acknowledged incident.")
mitigate = _transition_command("mitigate", "mitigate", "Start mitigating an incident under investigation.")
resolve = _transition_command("resolve", "resolve", "Resolve an incident.")
close = _transition_command("close", "close", "Close a resolved incident.")


@cli.command()
@click.argument("incident_id")
@click.argument("content")
@click.option("--author", help="Comment author (defaults to configured responder)")
@with_connection_options
def comment(
    incident_id: str,
    content: str,
    author: Optional[str],
    url: Optional[str],
    api_key: Optional[str],
):
    """Add a comment to an incident."""

    async def action(client: CoordinatorClient, config: Config):
        who = resolve_responder(config, author)
        incident = await client.add_comment(incident_id, who, content)
        print_success(
            f"Comment added to incident {incident['id']} "
            f"({incident['comment_count']} total)"
        )

    asyncio.run(with_client(url, api_key, action))


@cli.group()
def config():
    """Manage CLI configuration."""
    pass


@config.command(name="set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a configuration value (coordinator-url, api-key, responder)."""
    try:
        cfg = Config()
        cfg.set(key, value)
        print_success(f"Configuration updated: {normalize_key(key)}")
    except ConfigError as e:
        print_error(str(e))


@config.command(name="get")
@click.argument("key")
def config_get(key: str):
    """Get a configuration value."""
    try:
        value, source = Config().lookup(key)
    except ConfigError as e:
        print_error(str(e))
        return

    if value:
        console.print(f"{key} = {mask_secret(key, value)} [dim]({source})[/dim]")
    else:
        print_info(f"Configuration key '{key}' not set")


@config.command(name="unset")
@click.argument("key")
def config_unset(key: str):
    """Remove a configuration value from the config file."""
    try:
        removed = Config().unset(key)
    except ConfigError as e:
        print_error(str(e))
        return

    if removed:
        print_success(f"Configuration removed: {normalize_key(key)}")
    else:
        print_info(f"Configuration key '{key}' not set in the config file")


@config.command(name="list")
def config_list():
    """List all configuration values and where they come from."""
    try:
        cfg = Config()
        rows = [(key, *cfg.lookup(key)) for key in SETTINGS]
    except ConfigError as e:
        print_error(str(e))
        return

    if not any(value for _, value, _ in rows):
        print_info("No configuration set")
        return

    console.print("[bold]Configuration:[/bold]")
    for key, value, source in rows:
        if value:
            console.print(f"  {key} = {mask_secret(key, value)} [dim]({source})[/dim]")


if __name__ == "__main__":
    cli()
