"""KPR AMQP.

aio_pika 위의 최소 메시징 클라이언트입니다.

    context = await create_context(
        {"amqp": {"url": "amqp://localhost", "timeout": 30, "heartbeat": 60}}
    )
    channel = await context.connection()
    jobs = await context.assert_queue(channel, "jobs", {"queue": {"durable": True}})
    await jobs.consume(handle_job)
    await jobs.publish({"id": 1})
"""

from apps.kpr_amqp.exceptions import (
    BrokerUnavailableError,
    ConfigurationError,
    MessagingError,
    PayloadParseError,
    ProtocolError,
)
from apps.kpr_amqp.infrastructure.messaging import (
    MessagingContext,
    QueueBinding,
    connect_with_retry,
    create_context,
)
from apps.kpr_amqp.setup.config import AckPolicy, AmqpSettings, LogSettings, Settings
from apps.kpr_amqp.setup.lifecycle import Lifecycle

__all__ = [
    "AckPolicy",
    "AmqpSettings",
    "BrokerUnavailableError",
    "ConfigurationError",
    "Lifecycle",
    "LogSettings",
    "MessagingContext",
    "MessagingError",
    "PayloadParseError",
    "ProtocolError",
    "QueueBinding",
    "Settings",
    "connect_with_retry",
    "create_context",
]
