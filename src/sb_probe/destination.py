"""Destination kinds and address resolution.

A destination is either a queue or a topic read through one of its
subscriptions. Service Bus addresses a subscription as
``{topic}/Subscriptions/{subscription}``; that string is what the receiver
attaches to on the wire.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from sb_probe.errors import ConfigError

SUBSCRIPTION_SEGMENT = "Subscriptions"


class DestinationKind(str, Enum):
    """Queue or topic."""

    QUEUE = "queue"
    TOPIC = "topic"


def resolve(mode: DestinationKind, destination_name: str, subscription_name: str | None = None) -> str:
    """Return the address to consume from for the given destination."""
    match mode:
        case DestinationKind.QUEUE:
            return destination_name
        case DestinationKind.TOPIC:
            if not subscription_name:
                raise ConfigError(f"Topic {destination_name} requires a subscription name")
            return f"{destination_name}/{SUBSCRIPTION_SEGMENT}/{subscription_name}"
        case _:
            raise ConfigError(f"Unknown destination kind: {mode}")


class QueueDestination(BaseModel):
    """A point-to-point queue."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[DestinationKind.QUEUE] = DestinationKind.QUEUE
    name: str = Field(..., min_length=1, description="Queue name")

    @property
    def address(self) -> str:
        return resolve(self.kind, self.name)

    @property
    def label(self) -> str:
        return f"queue {self.name}"


class TopicDestination(BaseModel):
    """A topic, published to by name and consumed through a subscription."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[DestinationKind.TOPIC] = DestinationKind.TOPIC
    name: str = Field(..., min_length=1, description="Topic name")
    subscription_name: str = Field(..., min_length=1, description="Subscription to consume from")

    @property
    def address(self) -> str:
        return resolve(self.kind, self.name, self.subscription_name)

    @property
    def label(self) -> str:
        return f"topic {self.name} (subscription {self.subscription_name})"


Destination = Annotated[QueueDestination | TopicDestination, Field(discriminator="kind")]
