"""Harness configuration loaded from the environment and CLI overrides.

Environment values come from ``SERVICEBUS_*`` variables via pydantic-settings
(a ``.env`` file in the working directory is loaded first when present). CLI
arguments override them. The result is a frozen HarnessConfig passed to every
component; nothing below the CLI reads the environment.
"""

import os
import re

import dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from sb_probe.destination import Destination, QueueDestination, TopicDestination
from sb_probe.errors import ConfigError

DEFAULT_QUEUE_NAME = "test-queue"
REDACTED = "***REDACTED***"
CONNECTION_STRING_FORMAT = (
    "Endpoint=sb://<namespace>.servicebus.windows.net/;SharedAccessKeyName=<keyname>;SharedAccessKey=<key>"
)

SOURCE_CLI = "CLI argument"
SOURCE_ENV = "environment variable"
SOURCE_DEFAULT = "default"

_SHARED_ACCESS_KEY = re.compile(r"(SharedAccessKey=)[^;]+")


class ServiceBusSettings(BaseSettings):
    """Raw values from SERVICEBUS_* environment variables; empty values count as unset."""

    model_config = SettingsConfigDict(env_prefix="SERVICEBUS_", env_ignore_empty=True, frozen=True)

    connection_string: SecretStr | None = Field(default=None)
    queue_name: str | None = Field(default=None)
    topic_name: str | None = Field(default=None)
    subscription_name: str | None = Field(default=None)


class HarnessConfig(BaseModel):
    """Validated, immutable configuration for one harness invocation."""

    model_config = ConfigDict(frozen=True)

    connection_string: SecretStr = Field(..., description="Service Bus connection string")
    destinations: tuple[Destination, ...] = Field(..., min_length=1, description="Destinations to test, in order")
    sources: dict[str, str] = Field(default_factory=dict, description="Where each value came from")

    @property
    def redacted_connection_string(self) -> str:
        return redact_connection_string(self.connection_string.get_secret_value())


def redact_connection_string(connection_string: str | None) -> str | None:
    """Replace the SharedAccessKey value with a placeholder; leave everything else as is."""
    if connection_string is None:
        return None
    return _SHARED_ACCESS_KEY.sub(rf"\g<1>{REDACTED}", connection_string)


def get_settings() -> ServiceBusSettings:
    """Load settings from the environment, reading .env first if it exists."""
    if os.path.exists(".env"):
        dotenv.load_dotenv()
    return ServiceBusSettings()


def _pick(cli_value: str | None, env_value: str | None) -> tuple[str | None, str | None]:
    if cli_value:
        return cli_value, SOURCE_CLI
    if env_value:
        return env_value, SOURCE_ENV
    return None, None


def load_config(
    connection_string: str | None = None,
    queue_name: str | None = None,
    topic_name: str | None = None,
    subscription_name: str | None = None,
    settings: ServiceBusSettings | None = None,
) -> HarnessConfig:
    """Merge CLI values over environment settings and validate the result.

    Falls back to the ``test-queue`` queue when neither a queue nor a topic is
    configured. A topic needs a subscription and a subscription needs a topic.

    Raises:
        ConfigError: If the connection string is missing or the topic and
            subscription names are not given together.
    """
    settings = settings if settings is not None else get_settings()
    env_connection_string = (
        settings.connection_string.get_secret_value() if settings.connection_string else None
    )

    sources: dict[str, str] = {}
    conn_str, source = _pick(connection_string, env_connection_string)
    if not conn_str:
        raise ConfigError(
            "Please provide the connection string via CLI argument or "
            "SERVICEBUS_CONNECTION_STRING environment variable"
        )
    sources["connection_string"] = source

    queue, queue_source = _pick(queue_name, settings.queue_name)
    topic, topic_source = _pick(topic_name, settings.topic_name)
    subscription, subscription_source = _pick(subscription_name, settings.subscription_name)

    if topic and not subscription:
        raise ConfigError(f"Topic {topic} requires a subscription name")
    if subscription and not topic:
        raise ConfigError(f"Subscription {subscription} given without a topic name")

    if not queue and not topic:
        queue, queue_source = DEFAULT_QUEUE_NAME, SOURCE_DEFAULT

    destinations: list[QueueDestination | TopicDestination] = []
    if queue:
        destinations.append(QueueDestination(name=queue))
        sources["queue_name"] = queue_source
    if topic:
        destinations.append(TopicDestination(name=topic, subscription_name=subscription))
        sources["topic_name"] = topic_source
        sources["subscription_name"] = subscription_source

    return HarnessConfig(
        connection_string=SecretStr(conn_str),
        destinations=tuple(destinations),
        sources=sources,
    )
