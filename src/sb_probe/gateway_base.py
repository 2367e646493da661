"""Abstract base for message gateways.

Defines the send, blocking receive, and listener registration operations the
harness drives. Implementations (e.g. ServiceBusGateway) bind them to one
destination over a shared connection.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from sb_probe.listener import ListenerHandle
from sb_probe.message_model_dto import InboundMessageDTO, OutboundMessageDTO

MessageCallback = Callable[[InboundMessageDTO], None]


class GatewayBase(ABC):
    """Abstract base class for a destination-bound message gateway.

    Each operation acquires its own short-lived session (sender or receiver)
    and releases it before returning; only a listener's session outlives the
    call, owned by the returned handle.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """The address messages are consumed from."""
        pass

    @abstractmethod
    def send(self, message: OutboundMessageDTO) -> None:
        """Deliver one message to the destination. Raises SendError on failure."""
        pass

    @abstractmethod
    def receive(self, timeout_ms: int) -> InboundMessageDTO | None:
        """Wait up to timeout_ms for one message. Returns None on silence; raises ReceiveError on failure."""
        pass

    @abstractmethod
    def register_listener(self, callback: MessageCallback) -> ListenerHandle:
        """Start delivering each arriving message to callback on a background thread."""
        pass
