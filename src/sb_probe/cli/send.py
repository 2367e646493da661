"""Send one message to a queue or topic.

CLI that connects, sends a single durable text message, and exits.
"""

from typing import Any

import click

from sb_probe.cli.common import CONTEXT_SETTINGS, configure_logging, common_options, get_config, single_destination
from sb_probe.connection import ConnectionManager
from sb_probe.errors import MessagingError
from sb_probe.gateway_servicebus import ServiceBusGateway as Gateway
from sb_probe.message_model_dto import OutboundMessageDTO

DEFAULT_MESSAGE = "Hello from Azure Service Bus JMS!"


def parse_properties(values: tuple[str, ...]) -> dict[str, str]:
    """Turn KEY=VALUE strings into a dict."""
    properties: dict[str, str] = {}
    for value in values:
        key, sep, prop = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got: {value}", param_hint="--property")
        properties[key] = prop
    return properties


@click.command(context_settings=CONTEXT_SETTINGS)
@common_options
@click.option("--message-id", type=str, required=False, help="Message ID to set on the message")
@click.option("--priority", type=click.IntRange(0, 9), required=False, help="Message priority (0-9)")
@click.option(
    "--property",
    "properties",
    type=str,
    multiple=True,
    help="An application property as KEY=VALUE, can be used multiple times",
)
@click.argument("message", type=str, required=False, default=DEFAULT_MESSAGE)
def main(**kwargs: Any) -> None:
    """Send MESSAGE (default: a greeting) to the configured queue or topic."""
    configure_logging(kwargs["log_level"])
    properties = parse_properties(kwargs["properties"])
    config = get_config(
        kwargs["connection_string"],
        kwargs["queue_name"],
        kwargs["topic_name"],
        kwargs["subscription_name"],
    )
    destination = single_destination(config)
    message = OutboundMessageDTO(
        body=kwargs["message"],
        message_id=kwargs["message_id"],
        priority=kwargs["priority"],
        properties=properties,
    )

    connection = ConnectionManager(config.connection_string)
    try:
        connection.initialize()
        Gateway(connection, destination).send(message)
        click.echo(f"Message sent successfully: {message.body}")
        if message.message_id:
            click.echo(f"Sent message with ID: {message.message_id}")
    except MessagingError as e:
        raise click.ClickException(f"Error sending message: {e}") from e
    finally:
        connection.close()


if __name__ == "__main__":
    main()
