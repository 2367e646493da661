"""Message gateway backed by the azure-servicebus SDK.

Bodies go out as AMQP value strings, the shape a JMS TextMessage takes on
Service Bus, marked durable. Receivers run in receive-and-delete mode, so a
message is settled as soon as it is handed over.
"""

import logging
from typing import Any

from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.amqp import (
    AmqpAnnotatedMessage,
    AmqpMessageBodyType,
    AmqpMessageHeader,
    AmqpMessageProperties,
)
from azure.servicebus.exceptions import ServiceBusError

from sb_probe.connection import ConnectionManager
from sb_probe.destination import Destination, DestinationKind
from sb_probe.errors import BrokerConnectionError, ReceiveError, SendError
from sb_probe.gateway_base import GatewayBase, MessageCallback
from sb_probe.listener import ListenerHandle
from sb_probe.message_model_dto import InboundMessageDTO, OutboundMessageDTO

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return str(value)
    return str(value)


def body_text(message: Any) -> str:
    """Return the body as text; non-text payloads are coerced with str()."""
    match message.body_type:
        case AmqpMessageBodyType.DATA:
            return _text(b"".join(message.body))
        case AmqpMessageBodyType.VALUE:
            return _text(message.body)
        case _:
            logger.info("Received non-text message body of type %s", message.body_type)
            return str(message.body)


def to_inbound(message: Any) -> InboundMessageDTO:
    """Convert an SDK received message to an InboundMessageDTO."""
    enqueued = message.enqueued_time_utc
    header = message.raw_amqp_message.header
    properties = message.application_properties or {}
    return InboundMessageDTO(
        body=body_text(message),
        message_id=_text(message.message_id) if message.message_id is not None else "",
        timestamp=int(enqueued.timestamp() * 1000) if enqueued is not None else 0,
        priority=header.priority if header is not None else None,
        properties={_text(k): _text(v) for k, v in properties.items()},
    )


def to_amqp(message: OutboundMessageDTO) -> AmqpAnnotatedMessage:
    """Build a durable AMQP message carrying the body as a string value."""
    return AmqpAnnotatedMessage(
        value_body=message.body,
        header=AmqpMessageHeader(durable=True, priority=message.priority),
        properties=AmqpMessageProperties(message_id=message.message_id),
        application_properties=dict(message.properties) or None,
    )


class ServiceBusGateway(GatewayBase):
    """Send and receive against one queue or topic subscription.

    Topics are published to by topic name and consumed through the
    subscription address ``{topic}/Subscriptions/{subscription}``.
    """

    def __init__(self, connection: ConnectionManager, destination: Destination) -> None:
        self.connection = connection
        self.destination = destination

    @property
    def address(self) -> str:
        return self.destination.address

    def _sender(self):
        client = self.connection.client
        match self.destination.kind:
            case DestinationKind.TOPIC:
                return client.get_topic_sender(topic_name=self.destination.name)
            case _:
                return client.get_queue_sender(queue_name=self.destination.name)

    def _receiver(self):
        client = self.connection.client
        match self.destination.kind:
            case DestinationKind.TOPIC:
                return client.get_subscription_receiver(
                    topic_name=self.destination.name,
                    subscription_name=self.destination.subscription_name,
                    receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
                )
            case _:
                return client.get_queue_receiver(
                    queue_name=self.destination.name,
                    receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
                )

    def send(self, message: OutboundMessageDTO) -> None:
        """Send one message through a sender opened for this call only."""
        sender = self._sender()
        try:
            with sender:
                sender.send_messages(to_amqp(message))
        except ServiceBusError as e:
            raise SendError(f"Error sending message to {self.destination.name}", cause=e) from e
        logger.info("Sent message: %s", message.body)

    def receive(self, timeout_ms: int) -> InboundMessageDTO | None:
        """Wait up to timeout_ms for one message through a receiver opened for this call only.

        The SDK needs a positive wait, so a zero timeout waits one millisecond.
        """
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms must be non-negative, got {timeout_ms}")
        receiver = self._receiver()
        try:
            with receiver:
                batch = receiver.receive_messages(
                    max_message_count=1,
                    max_wait_time=max(timeout_ms, 1) / 1000,
                )
        except ServiceBusError as e:
            raise ReceiveError(f"Error receiving message from {self.address}", cause=e) from e
        if not batch:
            logger.info("No message received within %d ms", timeout_ms)
            return None
        message = to_inbound(batch[0])
        logger.info("Received message: %s", message.body)
        return message

    def register_listener(self, callback: MessageCallback) -> ListenerHandle:
        """Deliver each arriving message to callback until the handle is closed."""
        if not self.connection.is_open:
            raise BrokerConnectionError("Connection is not open")
        handle = ListenerHandle(
            open_receiver=self._receiver,
            convert=to_inbound,
            callback=callback,
            name=f"listener-{self.address}",
        )
        logger.info("Async message listener set up for %s", self.address)
        return handle.start()
