"""JSON Publisher.

메시지를 JSON으로 직렬화해 바인딩된 큐 이름을 routing key로 발행합니다.
재시도는 하지 않습니다 (실패는 호출자에게 전파).

이름 있는 exchange는 처음 한 번만 passive 조회 후 캐시합니다.
없는 exchange를 조회하면 브로커가 채널을 닫으므로,
같은 채널의 consumer도 함께 중단됩니다.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Mapping

from aio_pika import Message

if TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel, AbstractExchange

    from apps.kpr_amqp.setup.config import LoggerLike

LOG_TOPIC = "AMQP Publish"
CONTENT_TYPE = "application/json"

module_logger = logging.getLogger(__name__)


def encode_message(message: Any) -> bytes:
    """메시지를 compact JSON bytes로 직렬화.

    Raises:
        TypeError: JSON 직렬화 불가능한 값
    """
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


class JsonPublisher:
    """큐 단위 JSON 발행자."""

    def __init__(
        self,
        channel: "AbstractChannel",
        routing_key: str,
        *,
        logger: "LoggerLike | None" = None,
    ) -> None:
        """Initialize.

        Args:
            channel: 발행에 사용할 채널
            routing_key: 바인딩된 큐 이름
            logger: Logger Capability
        """
        self._channel = channel
        self._routing_key = routing_key
        self._logger = logger or module_logger
        self._exchanges: dict[str, "AbstractExchange"] = {}

    async def _resolve_exchange(self, exchange: str) -> "AbstractExchange":
        if not exchange:
            return self._channel.default_exchange
        cached = self._exchanges.get(exchange)
        if cached is None:
            # passive 조회: 없는 exchange면 브로커 오류 전파
            cached = await self._channel.get_exchange(exchange)
            self._exchanges[exchange] = cached
        return cached

    async def publish(
        self,
        message: Any,
        exchange: str = "",
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """메시지 발행.

        Args:
            message: JSON 직렬화 가능한 값
            exchange: Exchange 이름 ("" = default exchange)
            options: 메시지 속성 (delivery_mode, expiration, headers 등)

        Returns:
            exchange.publish 결과 (publisher confirm 프레임 또는 None)
        """
        self._logger.debug(
            "Message Sent",
            extra={
                "topic": LOG_TOPIC,
                "queue": self._routing_key,
                "exchange": exchange,
                "payload": message,
            },
        )
        body = encode_message(message)
        properties = {"content_type": CONTENT_TYPE, **(options or {})}
        target = await self._resolve_exchange(exchange)
        return await target.publish(
            Message(body=body, **properties),
            routing_key=self._routing_key,
        )
