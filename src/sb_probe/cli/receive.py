"""Receive messages from a queue or topic subscription.

CLI that waits for messages and prints each one until interrupted, or until
a message count or runtime limit is reached.
"""

import time
from typing import Any

import click
from icecream import ic

from sb_probe.cli.common import CONTEXT_SETTINGS, configure_logging, common_options, get_config, single_destination
from sb_probe.connection import ConnectionManager
from sb_probe.errors import MessagingError
from sb_probe.gateway_servicebus import ServiceBusGateway as Gateway

DEFAULT_RECEIVE_TIMEOUT_MS = 10000


def limit_reached(start_time: float, count: int, max_messages: int | None, max_runtime: int | None) -> bool:
    """Return True once either the message count or the runtime limit is hit."""
    if max_messages is not None and count >= max_messages:
        return True
    if max_runtime is not None and time.time() - start_time >= max_runtime:
        return True
    return False


@click.command(context_settings=CONTEXT_SETTINGS)
@common_options
@click.option(
    "--receive-timeout",
    type=click.IntRange(min=0),
    default=DEFAULT_RECEIVE_TIMEOUT_MS,
    help="Milliseconds to wait for each message",
)
@click.option("--max-messages", type=click.IntRange(min=1), default=None, help="Stop after this many messages")
@click.option("--max-runtime", type=click.IntRange(min=1), default=None, help="Stop after this many seconds")
def main(**kwargs: Any) -> None:
    """Print messages from the configured queue or topic subscription as they arrive."""
    configure_logging(kwargs["log_level"])
    config = get_config(
        kwargs["connection_string"],
        kwargs["queue_name"],
        kwargs["topic_name"],
        kwargs["subscription_name"],
    )
    destination = single_destination(config)
    max_messages = kwargs["max_messages"]
    max_runtime = kwargs["max_runtime"]

    connection = ConnectionManager(config.connection_string)
    try:
        connection.initialize()
        gateway = Gateway(connection, destination)
        click.echo(f"Waiting for messages from: {gateway.address}")
        click.echo("Press Ctrl+C to exit\n")

        start_time = time.time()
        count = 0
        while not limit_reached(start_time, count, max_messages, max_runtime):
            message = gateway.receive(kwargs["receive_timeout"])
            if message is None:
                click.echo("No message received, waiting...")
                continue
            count += 1
            click.echo(f"Received: {message.body}")
            click.echo(f"  Message ID: {message.message_id}")
            click.echo(f"  Timestamp: {message.timestamp}")
            if message.properties:
                ic(message.properties)
            click.echo()
        click.echo(f"Received {count} messages")
    except KeyboardInterrupt:
        click.echo("Stopped")
    except MessagingError as e:
        raise click.ClickException(f"Error receiving message: {e}") from e
    finally:
        connection.close()


if __name__ == "__main__":
    main()
