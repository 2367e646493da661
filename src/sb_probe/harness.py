"""Send/receive verification harness.

For each configured destination: connect, send a fixed list of bodies, drain
the destination until one receive times out, and compare what came back with
what went out. Runs are independent; a failed run never stops the next one.
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from enum import Enum

from sb_probe.config import HarnessConfig
from sb_probe.connection import ConnectionManager
from sb_probe.destination import Destination
from sb_probe.errors import MessagingError
from sb_probe.gateway_base import GatewayBase
from sb_probe.gateway_servicebus import ServiceBusGateway as Gateway
from sb_probe.listener import QueueingListener
from sb_probe.message_model_dto import OutboundMessageDTO, TestResultDTO

DEFAULT_MESSAGES = ("A", "B")
DEFAULT_RECEIVE_TIMEOUT_MS = 5000
RECEIVE_MODES = ("sync", "listener")

logger = logging.getLogger(__name__)


class HarnessState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    SENDING = "sending"
    RECEIVING = "receiving"
    VERIFIED = "verified"


def compare(
    sent: Sequence[str], received: Sequence[str], allow_duplicates: bool = False
) -> tuple[bool, list[str], list[str]]:
    """Compare sent and received bodies as bags.

    Returns ``(passed, missing, unexpected)``. Strictly, every body must come
    back exactly as many times as it was sent, so a redelivered duplicate is
    reported as unexpected. With allow_duplicates only the distinct bodies
    have to match.
    """
    sent_counts = Counter(sent)
    received_counts = Counter(received)
    if allow_duplicates:
        missing = [body for body in sent_counts if body not in received_counts]
        unexpected = [body for body in received_counts if body not in sent_counts]
    else:
        missing = list((sent_counts - received_counts).elements())
        unexpected = list((received_counts - sent_counts).elements())
    return not missing and not unexpected, missing, unexpected


class VerificationHarness:
    """Drives Idle -> Connected -> Sending -> Receiving -> Verified for each destination.

    ``connection_factory`` and ``gateway_factory`` default to the Service Bus
    implementations and can be swapped for tests or other brokers.
    """

    def __init__(
        self,
        config: HarnessConfig,
        messages: Iterable[str] = DEFAULT_MESSAGES,
        receive_timeout_ms: int = DEFAULT_RECEIVE_TIMEOUT_MS,
        receive_mode: str = "sync",
        allow_duplicates: bool = False,
        connection_factory: Callable[..., ConnectionManager] | None = None,
        gateway_factory: Callable[[ConnectionManager, Destination], GatewayBase] | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        if receive_mode not in RECEIVE_MODES:
            raise ValueError(f"Invalid receive mode: {receive_mode}. Valid modes are: {', '.join(RECEIVE_MODES)}")
        if receive_timeout_ms < 0:
            raise ValueError(f"receive_timeout_ms must be non-negative, got {receive_timeout_ms}")
        self.config = config
        self.messages = list(messages)
        self.receive_timeout_ms = receive_timeout_ms
        self.receive_mode = receive_mode
        self.allow_duplicates = allow_duplicates
        self.connection_factory = connection_factory or ConnectionManager
        self.gateway_factory = gateway_factory or Gateway
        self.echo = echo or (lambda text: None)
        self.state = HarnessState.IDLE

    def run_all(self) -> tuple[bool, list[TestResultDTO]]:
        """Run every configured destination in order; passes only if all runs pass."""
        results = [self.run(destination) for destination in self.config.destinations]
        return all(result.passed for result in results), results

    def run(self, destination: Destination) -> TestResultDTO:
        """Run the full scenario against one destination; any error fails this run only."""
        self.state = HarnessState.IDLE
        result = TestResultDTO(destination=destination.address)
        connection = self.connection_factory(self.config.connection_string)
        try:
            connection.initialize()
            self.state = HarnessState.CONNECTED
            self.echo(f"Successfully connected to Azure Service Bus for {destination.label}")
            gateway = self.gateway_factory(connection, destination)

            self.state = HarnessState.SENDING
            self._send_all(gateway, result)

            self.state = HarnessState.RECEIVING
            self._drain(gateway, result)
        except MessagingError as e:
            logger.error("Run against %s aborted in state %s: %s", destination.address, self.state.value, e)
            result.error = str(e)
        except Exception as e:
            logger.exception("Run against %s failed in state %s", destination.address, self.state.value)
            result.error = f"{type(e).__name__}: {e}"
        finally:
            connection.close()

        result.passed, result.missing, result.unexpected = compare(
            result.sent, result.received, allow_duplicates=self.allow_duplicates
        )
        if result.error is not None:
            result.passed = False
        self.state = HarnessState.VERIFIED
        return result

    def _send_all(self, gateway: GatewayBase, result: TestResultDTO) -> None:
        for body in self.messages:
            gateway.send(OutboundMessageDTO(body=body))
            result.sent.append(body)
            self.echo(f"Sent message: {body}")

    def _drain(self, gateway: GatewayBase, result: TestResultDTO) -> None:
        # A single silent timeout is taken to mean the destination is empty.
        if self.receive_mode == "listener":
            listener = QueueingListener(gateway).start()
            try:
                while (message := listener.get(self.receive_timeout_ms)) is not None:
                    result.received.append(message.body)
                    self.echo(f"Processed: {message.body}")
            finally:
                # Deliveries that landed after the last get are already settled on the broker.
                for message in listener.close():
                    result.received.append(message.body)
                    self.echo(f"Processed late delivery: {message.body}")
            return
        while (message := gateway.receive(self.receive_timeout_ms)) is not None:
            result.received.append(message.body)
            self.echo(f"Processed: {message.body}")
