"""Tests for the connection manager."""

from unittest import TestCase
from unittest.mock import MagicMock, patch

from pydantic import SecretStr

from sb_probe.connection import CONNECTION_IDLE_TIMEOUT_MS, ConnectionManager
from sb_probe.errors import BrokerConnectionError

CONN_STR = "Endpoint=sb://ns/;SharedAccessKeyName=k;SharedAccessKey=secret"


@patch("sb_probe.connection.ServiceBusClient")
class TestConnectionManager(TestCase):
    def test_initialize_creates_client_without_retries(self, mock_client_class):
        connection = ConnectionManager(SecretStr(CONN_STR))
        client = connection.initialize()
        mock_client_class.from_connection_string.assert_called_once_with(CONN_STR, retry_total=0)
        self.assertIs(client, mock_client_class.from_connection_string.return_value)
        self.assertTrue(connection.is_open)
        self.assertEqual(connection.idle_timeout_ms, CONNECTION_IDLE_TIMEOUT_MS)

    def test_initialize_twice_reuses_client(self, mock_client_class):
        connection = ConnectionManager(CONN_STR)
        self.assertIs(connection.initialize(), connection.initialize())
        mock_client_class.from_connection_string.assert_called_once()

    def test_initialize_failure_raises_and_redacts(self, mock_client_class):
        mock_client_class.from_connection_string.side_effect = ValueError("bad string")
        connection = ConnectionManager(CONN_STR)
        with self.assertRaises(BrokerConnectionError) as ctx:
            connection.initialize()
        self.assertIsInstance(ctx.exception.cause, ValueError)
        self.assertNotIn("secret", str(ctx.exception))
        self.assertFalse(connection.is_open)

    def test_client_before_initialize_raises(self, mock_client_class):
        with self.assertRaises(BrokerConnectionError):
            ConnectionManager(CONN_STR).client

    def test_close_twice_does_not_raise(self, mock_client_class):
        connection = ConnectionManager(CONN_STR)
        connection.initialize()
        connection.close()
        connection.close()
        mock_client_class.from_connection_string.return_value.close.assert_called_once()
        self.assertFalse(connection.is_open)

    def test_close_never_opened(self, mock_client_class):
        ConnectionManager(CONN_STR).close()

    def test_close_error_is_logged_not_raised(self, mock_client_class):
        client = MagicMock()
        client.close.side_effect = RuntimeError("socket gone")
        mock_client_class.from_connection_string.return_value = client
        connection = ConnectionManager(CONN_STR)
        connection.initialize()
        with self.assertLogs("sb_probe.connection", level="WARNING") as logs:
            connection.close()
        self.assertIn("socket gone", logs.output[0])

    def test_context_manager(self, mock_client_class):
        with ConnectionManager(CONN_STR) as connection:
            self.assertTrue(connection.is_open)
        self.assertFalse(connection.is_open)
