"""Error types raised by the harness.

Transport faults from the SDK are wrapped in a single MessagingError family
carrying the original exception as ``cause``. Nothing here retries.
"""


class ConfigError(ValueError):
    """Missing or inconsistent configuration (connection string, topic/subscription)."""


class MessagingError(Exception):
    """A transport-level fault; ``cause`` holds the underlying SDK exception."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        text = super().__str__()
        if self.cause is not None:
            return f"{text}: {self.cause}"
        return text


class BrokerConnectionError(MessagingError):
    """The client could not be created or is not open."""


class SendError(MessagingError):
    """A message could not be delivered to the broker."""


class ReceiveError(MessagingError):
    """Receiving from the destination failed."""
