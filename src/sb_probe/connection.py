"""Ownership of the single Service Bus client.

The client is created by ``initialize`` and released by ``close``. Senders and
receivers are derived from it per call by the gateway.
"""

import logging

from azure.servicebus import ServiceBusClient
from pydantic import SecretStr

from sb_probe.config import redact_connection_string
from sb_probe.errors import BrokerConnectionError

CONNECTION_IDLE_TIMEOUT_MS = 20000

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Opens and closes the one connection a harness run uses.

    SDK retries are turned off so a transport fault reaches the caller on the
    first attempt. ``close`` never raises, so it can sit in a ``finally``
    block without masking the outcome of the run.
    """

    def __init__(
        self,
        connection_string: SecretStr | str,
        idle_timeout_ms: int = CONNECTION_IDLE_TIMEOUT_MS,
    ) -> None:
        if isinstance(connection_string, SecretStr):
            connection_string = connection_string.get_secret_value()
        self._connection_string = connection_string
        self.idle_timeout_ms = idle_timeout_ms
        self._client: ServiceBusClient | None = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> ServiceBusClient:
        """The open client; raises BrokerConnectionError before initialize or after close."""
        if self._client is None:
            raise BrokerConnectionError("Connection is not open")
        return self._client

    def initialize(self) -> ServiceBusClient:
        """Create the client. Returns the already open client on repeat calls."""
        if self._client is not None:
            return self._client
        try:
            self._client = ServiceBusClient.from_connection_string(
                self._connection_string,
                retry_total=0,
            )
        except Exception as e:
            raise BrokerConnectionError(
                f"Failed to connect using {redact_connection_string(self._connection_string)}", cause=e
            ) from e
        logger.info("Connected to Azure Service Bus (idle timeout %d ms)", self.idle_timeout_ms)
        return self._client

    def close(self) -> None:
        """Close the client if open; errors are logged, never raised."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.close()
            logger.info("Connection closed")
        except Exception as e:
            logger.warning("Error closing connection: %s", e)

    def __enter__(self) -> "ConnectionManager":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
