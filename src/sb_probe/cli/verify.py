"""Run the send/receive verification against the configured destinations.

Sends a fixed list of messages to each destination, drains it, and checks
that exactly the sent messages came back. Exits 0 when every destination
passes and 1 otherwise.
"""

import sys
from typing import Any

import click

from sb_probe.cli.common import CONTEXT_SETTINGS, configure_logging, common_options, get_config, print_configuration
from sb_probe.connection import CONNECTION_IDLE_TIMEOUT_MS
from sb_probe.harness import DEFAULT_MESSAGES, DEFAULT_RECEIVE_TIMEOUT_MS, RECEIVE_MODES, VerificationHarness
from sb_probe.message_model_dto import TestResultDTO


def report(result: TestResultDTO) -> None:
    """Print the outcome of one run; failures go to stderr."""
    click.echo(f"\n=== Test Results: {result.destination} ===")
    click.echo(f"Messages Sent: {len(result.sent)}")
    click.echo(f"Messages Received: {len(result.received)}")
    if result.error:
        click.secho(f"Error: {result.error}", err=True, color=True, fg="red")
    for body in result.missing:
        click.secho(f"FAILED: Message not received: {body}", err=True, color=True, fg="red")
    for body in result.unexpected:
        click.secho(f"FAILED: Unexpected message received: {body}", err=True, color=True, fg="red")


@click.command(context_settings=CONTEXT_SETTINGS)
@common_options
@click.option(
    "--message",
    "messages",
    type=str,
    multiple=True,
    help="A message body to send, can be used multiple times (default: A, B)",
)
@click.option(
    "--receive-timeout",
    type=click.IntRange(min=0),
    default=DEFAULT_RECEIVE_TIMEOUT_MS,
    help="Milliseconds of silence after which the destination counts as drained",
)
@click.option(
    "--receive-mode",
    type=click.Choice(RECEIVE_MODES),
    default="sync",
    help="Drain with blocking receive calls or with an asynchronous listener",
)
@click.option(
    "--allow-duplicates",
    is_flag=True,
    default=False,
    help="Pass when redelivered duplicates arrive, as long as every message was received",
)
def main(**kwargs: Any) -> None:
    """Send test messages, receive them back, and assert all were received.

    With both a queue and a topic configured the test runs once per
    destination, and passes only if both runs pass.
    """
    configure_logging(kwargs["log_level"])
    config = get_config(
        kwargs["connection_string"],
        kwargs["queue_name"],
        kwargs["topic_name"],
        kwargs["subscription_name"],
    )
    print_configuration(config, idle_timeout_ms=CONNECTION_IDLE_TIMEOUT_MS)

    harness = VerificationHarness(
        config,
        messages=kwargs["messages"] or DEFAULT_MESSAGES,
        receive_timeout_ms=kwargs["receive_timeout"],
        receive_mode=kwargs["receive_mode"],
        allow_duplicates=kwargs["allow_duplicates"],
        echo=click.echo,
    )
    passed, results = harness.run_all()
    for result in results:
        report(result)

    if passed:
        click.secho("TEST PASSED: All sent messages were received!", color=True, fg="green")
        return
    click.secho(
        "TEST FAILED: Not all messages were received or extra messages found",
        err=True,
        color=True,
        fg="red",
    )
    sys.exit(1)


if __name__ == "__main__":
    main()
