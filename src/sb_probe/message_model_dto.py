"""Message data transfer objects.

Defines the outbound message handed to the gateway, the inbound message it
returns, and the result of one verification run.
"""

from pydantic import BaseModel, ConfigDict, Field


class OutboundMessageDTO(BaseModel):
    """A text message to send; durability is the broker's job once sent."""

    model_config = ConfigDict(frozen=True)

    body: str = Field(..., description="Text payload")
    message_id: str | None = Field(None, description="Application message identifier")
    priority: int | None = Field(None, ge=0, le=9, description="Message priority (0-9)")
    properties: dict[str, str] = Field(default_factory=dict, description="Application properties")


class InboundMessageDTO(BaseModel):
    """A message as returned by a receive call."""

    body: str = Field(..., description="Payload, coerced to text")
    message_id: str = Field("", description="Broker or application message identifier")
    timestamp: int = Field(0, description="Enqueue time in epoch milliseconds, 0 if unknown")
    priority: int | None = Field(None, description="Priority from the AMQP header, if set")
    properties: dict[str, str] = Field(default_factory=dict, description="Application properties")


class TestResultDTO(BaseModel):
    """Outcome of one send/drain/compare run against a single destination."""

    __test__ = False

    destination: str = Field(..., description="Address the run consumed from")
    sent: list[str] = Field(default_factory=list, description="Bodies sent, in order")
    received: list[str] = Field(default_factory=list, description="Bodies received, in order")
    passed: bool = Field(False, description="Whether received matches sent")
    missing: list[str] = Field(default_factory=list, description="Sent bodies not received")
    unexpected: list[str] = Field(default_factory=list, description="Received bodies beyond what was sent")
    error: str | None = Field(None, description="Error that aborted the run, if any")
