"""Tests for the azure-servicebus gateway."""

from datetime import datetime, timezone
from unittest import TestCase
from unittest.mock import MagicMock

from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.amqp import AmqpMessageBodyType
from azure.servicebus.exceptions import ServiceBusError

from sb_probe.destination import QueueDestination, TopicDestination
from sb_probe.errors import BrokerConnectionError, ReceiveError, SendError
from sb_probe.gateway_servicebus import ServiceBusGateway, body_text, to_amqp, to_inbound
from sb_probe.message_model_dto import OutboundMessageDTO


def raw_message(body="A", body_type=AmqpMessageBodyType.VALUE, **kwargs):
    message = MagicMock()
    message.body = body
    message.body_type = body_type
    message.message_id = kwargs.get("message_id", "id-1")
    message.enqueued_time_utc = kwargs.get("enqueued", datetime(2024, 1, 1, tzinfo=timezone.utc))
    message.application_properties = kwargs.get("properties", {})
    message.raw_amqp_message.header.priority = kwargs.get("priority", 4)
    return message


class TestConversions(TestCase):
    def test_body_text_value(self):
        self.assertEqual(body_text(raw_message("hello")), "hello")

    def test_body_text_data_sections(self):
        message = raw_message(iter([b"hel", b"lo"]), AmqpMessageBodyType.DATA)
        self.assertEqual(body_text(message), "hello")

    def test_body_text_non_text_is_coerced(self):
        message = raw_message([1, 2], AmqpMessageBodyType.SEQUENCE)
        self.assertEqual(body_text(message), "[1, 2]")

    def test_body_text_undecodable_bytes(self):
        message = raw_message(iter([b"\xff"]), AmqpMessageBodyType.DATA)
        self.assertEqual(body_text(message), "b'\\xff'")

    def test_to_inbound(self):
        message = raw_message(
            "A",
            properties={b"CustomProperty": b"CustomValue"},
            priority=7,
        )
        inbound = to_inbound(message)
        self.assertEqual(inbound.body, "A")
        self.assertEqual(inbound.message_id, "id-1")
        self.assertEqual(inbound.timestamp, 1704067200000)
        self.assertEqual(inbound.priority, 7)
        self.assertEqual(inbound.properties, {"CustomProperty": "CustomValue"})

    def test_to_inbound_missing_fields(self):
        message = raw_message("A", message_id=None, enqueued=None, properties=None)
        inbound = to_inbound(message)
        self.assertEqual(inbound.message_id, "")
        self.assertEqual(inbound.timestamp, 0)
        self.assertEqual(inbound.properties, {})

    def test_to_amqp_is_durable_text_value(self):
        amqp = to_amqp(
            OutboundMessageDTO(body="A", message_id="m-1", priority=5, properties={"CustomProperty": "CustomValue"})
        )
        self.assertEqual(amqp.body_type, AmqpMessageBodyType.VALUE)
        self.assertEqual(amqp.body, "A")
        self.assertTrue(amqp.header.durable)
        self.assertEqual(amqp.header.priority, 5)
        self.assertEqual(amqp.properties.message_id, "m-1")
        self.assertEqual(amqp.application_properties, {"CustomProperty": "CustomValue"})


class TestServiceBusGateway(TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.connection = MagicMock()
        self.connection.client = self.client
        self.connection.is_open = True
        self.queue = QueueDestination(name="orders")
        self.topic = TopicDestination(name="events", subscription_name="audit")

    def test_send_to_queue_uses_scoped_sender(self):
        sender = self.client.get_queue_sender.return_value
        ServiceBusGateway(self.connection, self.queue).send(OutboundMessageDTO(body="A"))
        self.client.get_queue_sender.assert_called_once_with(queue_name="orders")
        sender.__enter__.assert_called_once()
        sender.__exit__.assert_called_once()
        sent = sender.send_messages.call_args[0][0]
        self.assertEqual(sent.body, "A")
        self.assertTrue(sent.header.durable)

    def test_send_to_topic_uses_topic_name(self):
        ServiceBusGateway(self.connection, self.topic).send(OutboundMessageDTO(body="A"))
        self.client.get_topic_sender.assert_called_once_with(topic_name="events")

    def test_send_error_is_wrapped(self):
        cause = ServiceBusError("link detached")
        self.client.get_queue_sender.return_value.send_messages.side_effect = cause
        with self.assertRaises(SendError) as ctx:
            ServiceBusGateway(self.connection, self.queue).send(OutboundMessageDTO(body="A"))
        self.assertIs(ctx.exception.cause, cause)

    def test_receive_returns_message(self):
        receiver = self.client.get_queue_receiver.return_value
        receiver.receive_messages.return_value = [raw_message("B")]
        message = ServiceBusGateway(self.connection, self.queue).receive(5000)
        self.assertEqual(message.body, "B")
        self.client.get_queue_receiver.assert_called_once_with(
            queue_name="orders",
            receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
        )
        receiver.receive_messages.assert_called_once_with(max_message_count=1, max_wait_time=5.0)
        receiver.__exit__.assert_called_once()

    def test_receive_from_subscription(self):
        receiver = self.client.get_subscription_receiver.return_value
        receiver.receive_messages.return_value = []
        gateway = ServiceBusGateway(self.connection, self.topic)
        self.assertIsNone(gateway.receive(100))
        self.assertEqual(gateway.address, "events/Subscriptions/audit")
        self.client.get_subscription_receiver.assert_called_once_with(
            topic_name="events",
            subscription_name="audit",
            receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
        )

    def test_receive_zero_timeout_waits_minimum(self):
        receiver = self.client.get_queue_receiver.return_value
        receiver.receive_messages.return_value = []
        self.assertIsNone(ServiceBusGateway(self.connection, self.queue).receive(0))
        receiver.receive_messages.assert_called_once_with(max_message_count=1, max_wait_time=0.001)

    def test_receive_negative_timeout_raises(self):
        with self.assertRaises(ValueError):
            ServiceBusGateway(self.connection, self.queue).receive(-1)

    def test_receive_error_is_wrapped(self):
        self.client.get_queue_receiver.return_value.receive_messages.side_effect = ServiceBusError("gone")
        with self.assertRaises(ReceiveError):
            ServiceBusGateway(self.connection, self.queue).receive(10)

    def test_register_listener_requires_open_connection(self):
        self.connection.is_open = False
        with self.assertRaises(BrokerConnectionError):
            ServiceBusGateway(self.connection, self.queue).register_listener(lambda message: None)
