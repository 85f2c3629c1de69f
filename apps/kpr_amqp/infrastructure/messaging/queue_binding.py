"""Queue Binding.

assert_queue 결과로 만들어지는 큐 단위 consume/publish 쌍입니다.
호출마다 새로 생성되며 캐시하지 않습니다.
바인딩마다 하나의 JsonPublisher를 두어 exchange 조회를 재사용합니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from apps.kpr_amqp.infrastructure.messaging.publisher import JsonPublisher
from apps.kpr_amqp.presentation.adapters.consumer_adapter import (
    LOG_TOPIC as CONSUME_TOPIC,
    ConsumerAdapter,
    MessageCallback,
)
from apps.kpr_amqp.presentation.adapters.message_stream import (
    DEFAULT_MAXSIZE,
    MessageStream,
)
from apps.kpr_amqp.setup.config import AckPolicy

if TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel, AbstractQueue

    from apps.kpr_amqp.setup.config import LoggerLike


@dataclass(frozen=True)
class QueueBinding:
    """채널 + 큐 이름에 바인딩된 consume/publish.

    동일한 (channel, name)으로 만든 바인딩은 서로 같습니다.
    """

    channel: "AbstractChannel"
    name: str
    queue: "AbstractQueue" = field(compare=False, repr=False)
    logger: "LoggerLike" = field(
        default_factory=lambda: logging.getLogger(__name__),
        compare=False,
        repr=False,
    )
    ack_policy: AckPolicy = field(default=AckPolicy.AFTER_HANDLER, compare=False)
    publisher: JsonPublisher = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "publisher",
            JsonPublisher(self.channel, self.name, logger=self.logger),
        )

    async def consume(
        self,
        callback: MessageCallback,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Consumer 등록.

        Args:
            callback: 파싱된 메시지를 받을 콜백
            options: queue.consume 옵션 (no_ack, exclusive 등)

        Returns:
            consumer tag
        """
        options = dict(options or {})
        adapter = ConsumerAdapter(
            callback,
            queue_name=self.name,
            logger=self.logger,
            ack_policy=self.ack_policy,
            no_ack=bool(options.get("no_ack", False)),
        )
        self.logger.debug(
            "Listening",
            extra={"topic": CONSUME_TOPIC, "queue": self.name},
        )
        return await self.queue.consume(adapter.on_message, **options)

    async def publish(
        self,
        message: Any,
        exchange: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """큐 이름을 routing key로 메시지 발행."""
        return await self.publisher.publish(
            message,
            exchange=exchange,
            options=options,
        )

    def stream(
        self,
        maxsize: int = DEFAULT_MAXSIZE,
        options: Mapping[str, Any] | None = None,
    ) -> MessageStream:
        """Bounded 버퍼 기반 메시지 스트림 생성 (async with로 사용)."""
        return MessageStream(
            self.queue,
            logger=self.logger,
            maxsize=maxsize,
            options=options,
        )
