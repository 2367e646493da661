"""Options and helpers shared by the sb-probe commands."""

import logging

import click

from sb_probe.config import CONNECTION_STRING_FORMAT, HarnessConfig, load_config
from sb_probe.destination import QueueDestination, TopicDestination
from sb_probe.errors import ConfigError

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def common_options(func):
    """Add the connection, destination and logging options to a command."""
    options = [
        click.option(
            "-c",
            "--connection-string",
            type=str,
            required=False,
            help="Service Bus connection string (overrides SERVICEBUS_CONNECTION_STRING env var)",
        ),
        click.option(
            "-q",
            "--queue-name",
            type=str,
            required=False,
            help="Queue name (overrides SERVICEBUS_QUEUE_NAME env var)",
        ),
        click.option(
            "-t",
            "--topic-name",
            type=str,
            required=False,
            help="Topic name (overrides SERVICEBUS_TOPIC_NAME env var)",
        ),
        click.option(
            "-s",
            "--subscription-name",
            type=str,
            required=False,
            help="Subscription name, required with a topic (overrides SERVICEBUS_SUBSCRIPTION_NAME env var)",
        ),
        click.option(
            "--log-level",
            type=click.Choice(LOG_LEVELS, case_sensitive=False),
            default="WARNING",
            help="Logging level for library output",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def get_config(
    connection_string: str | None,
    queue_name: str | None,
    topic_name: str | None,
    subscription_name: str | None,
) -> HarnessConfig:
    """Load the configuration, turning ConfigError into a click error (exit 1)."""
    try:
        return load_config(
            connection_string=connection_string,
            queue_name=queue_name,
            topic_name=topic_name,
            subscription_name=subscription_name,
        )
    except ConfigError as e:
        raise click.ClickException(f"{e}\nFormat: {CONNECTION_STRING_FORMAT}") from e


def single_destination(config: HarnessConfig) -> QueueDestination | TopicDestination:
    """Return the only configured destination; commands other than verify take one."""
    if len(config.destinations) != 1:
        raise click.ClickException("Give either a queue or a topic, not both")
    return config.destinations[0]


def print_configuration(config: HarnessConfig, idle_timeout_ms: int | None = None) -> None:
    """Print the effective configuration with the shared access key redacted."""
    sources = config.sources
    click.echo("=== Configuration ===")
    click.echo(f"Connection String ({sources['connection_string']}): {config.redacted_connection_string}")
    for destination in config.destinations:
        if isinstance(destination, TopicDestination):
            click.echo(f"Topic Name ({sources['topic_name']}): {destination.name}")
            click.echo(f"Subscription Name ({sources['subscription_name']}): {destination.subscription_name}")
        else:
            click.echo(f"Queue Name ({sources['queue_name']}): {destination.name}")
    if idle_timeout_ms is not None:
        click.echo(f"Connection Idle Timeout: {idle_timeout_ms} ms")
    click.echo("=====================")
