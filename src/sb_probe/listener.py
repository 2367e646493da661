"""Background message delivery.

A ListenerHandle owns one receiver for as long as the handle is open and
calls the registered callback on its own thread. QueueingListener funnels
those deliveries into a queue.Queue so that only the main path reads them.
"""

import logging
import queue
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from sb_probe.errors import ReceiveError
from sb_probe.message_model_dto import InboundMessageDTO

LISTENER_POLL_SECONDS = 1.0
LISTENER_BATCH_SIZE = 10

logger = logging.getLogger(__name__)


class ListenerHandle:
    """Keeps a receiver open on a daemon thread until closed.

    Callback exceptions are logged and delivery continues. Any other fault
    (transport, opening the receiver, converting a message) ends the listener
    and is kept on ``error`` as a ReceiveError.
    """

    def __init__(
        self,
        open_receiver: Callable[[], AbstractContextManager[Any]],
        convert: Callable[[Any], InboundMessageDTO],
        callback: Callable[[InboundMessageDTO], None],
        name: str = "listener",
    ) -> None:
        self._open_receiver = open_receiver
        self._convert = convert
        self._callback = callback
        self._stop = threading.Event()
        self.error: ReceiveError | None = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "ListenerHandle":
        self._thread.start()
        return self

    @property
    def is_active(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def _run(self) -> None:
        try:
            with self._open_receiver() as receiver:
                while not self._stop.is_set():
                    batch = receiver.receive_messages(
                        max_message_count=LISTENER_BATCH_SIZE,
                        max_wait_time=LISTENER_POLL_SECONDS,
                    )
                    for raw in batch:
                        self._deliver(self._convert(raw))
        except Exception as e:
            self.error = e if isinstance(e, ReceiveError) else ReceiveError("Listener stopped", cause=e)
            logger.error("Listener %s stopped: %s", self._thread.name, e)

    def _deliver(self, message: InboundMessageDTO) -> None:
        try:
            self._callback(message)
        except Exception:
            logger.exception("Listener callback failed for message %s", message.message_id)

    def close(self, timeout: float | None = None) -> None:
        """Stop delivery and wait for the receiver to be released."""
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.debug("Listener %s closed", self._thread.name)

    def __enter__(self) -> "ListenerHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class QueueingListener:
    """Registers a listener whose deliveries land in ``inbox`` for one reader."""

    def __init__(self, gateway) -> None:
        self._gateway = gateway
        self.inbox: queue.Queue[InboundMessageDTO] = queue.Queue()
        self._handle: ListenerHandle | None = None

    def start(self) -> "QueueingListener":
        self._handle = self._gateway.register_listener(self.inbox.put)
        return self

    def get(self, timeout_ms: int) -> InboundMessageDTO | None:
        """Next delivered message, or None after timeout_ms of silence.

        Raises:
            ReceiveError: If the listener died and nothing is left to read.
        """
        try:
            return self.inbox.get(timeout=timeout_ms / 1000)
        except queue.Empty:
            if self._handle is not None and self._handle.error is not None:
                raise self._handle.error
            return None

    def close(self) -> list[InboundMessageDTO]:
        """Stop the listener and return messages delivered after the last get.

        Receivers settle on delivery, so anything left in the inbox is already
        gone from the broker and must still be counted by the caller.
        """
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        leftover: list[InboundMessageDTO] = []
        while True:
            try:
                leftover.append(self.inbox.get_nowait())
            except queue.Empty:
                return leftover

    def __enter__(self) -> "QueueingListener":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
