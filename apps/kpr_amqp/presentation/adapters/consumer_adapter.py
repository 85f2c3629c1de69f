"""Consumer Adapter.

MQ semantics를 담당하는 프로토콜 어댑터입니다.

ConsumerAdapter의 책임:
1. 메시지 decode (UTF-8 → JSON)
2. 파싱 실패 분류 (poison / retry)
3. 콜백 디스패칭
4. AckPolicy 기반 ack/nack 결정

aio_pika Queue
        │
        │ IncomingMessage (bytes)
        ▼
ConsumerAdapter
        │
        ├── 파싱 실패 + redelivered → ack (poison, 버림)
        ├── 파싱 실패 + 첫 전달     → nack + requeue
        │
        │ JSON decoded payload
        ▼
callback(payload)
        │
        └── AFTER_HANDLER: ack / nack, DELEGATE: 처리 안 함
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from apps.kpr_amqp.exceptions import PayloadParseError
from apps.kpr_amqp.setup.config import AckPolicy

if TYPE_CHECKING:
    from aio_pika.abc import AbstractIncomingMessage

    from apps.kpr_amqp.setup.config import LoggerLike

LOG_TOPIC = "AMQP Consume"
BODY_PREVIEW_LIMIT = 256

MessageCallback = Callable[[Any], Union[Awaitable[Any], Any]]

module_logger = logging.getLogger(__name__)


def decode_payload(body: bytes) -> Any:
    """메시지 본문을 JSON 문서로 decode.

    Raises:
        PayloadParseError: UTF-8 또는 JSON이 아닌 경우
    """
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PayloadParseError(str(e)) from e


def describe_delivery(message: "AbstractIncomingMessage") -> dict[str, Any]:
    """로그용 delivery 요약."""
    return {
        "message_id": message.message_id,
        "delivery_tag": message.delivery_tag,
        "redelivered": bool(message.redelivered),
        "body": bytes(message.body[:BODY_PREVIEW_LIMIT]).decode("utf-8", "replace"),
    }


class DeliveryAdapter:
    """Delivery decode 및 파싱 실패 처리 Base.

    파싱에 성공한 메시지의 처리는 하위 클래스의 _dispatch가 담당합니다.
    """

    def __init__(
        self,
        *,
        queue_name: str,
        logger: "LoggerLike | None" = None,
        no_ack: bool = False,
    ) -> None:
        """Initialize.

        Args:
            queue_name: 소비 중인 큐 이름 (로그용)
            logger: Logger Capability
            no_ack: 브로커 auto-ack 소비 여부 (True면 ack/nack 호출 안 함)
        """
        self._queue_name = queue_name
        self._logger = logger or module_logger
        self._no_ack = no_ack
        self._processed = 0
        self._retried = 0
        self._dropped = 0
        self._failed = 0

    async def on_message(self, message: "AbstractIncomingMessage") -> None:
        """메시지 처리 콜백.

        Args:
            message: RabbitMQ 메시지
        """
        try:
            payload = decode_payload(message.body)
        except PayloadParseError as e:
            await self._handle_unparseable(message, e)
            return

        self._logger.debug(
            "Message Received",
            extra={"topic": LOG_TOPIC, "queue": self._queue_name, "payload": payload},
        )
        await self._dispatch(payload, message)

    async def _handle_unparseable(
        self,
        message: "AbstractIncomingMessage",
        error: PayloadParseError,
    ) -> None:
        context = {
            "topic": LOG_TOPIC,
            "queue": self._queue_name,
            "delivery": describe_delivery(message),
            "payload": None,
        }

        if message.redelivered:
            # 이미 재전달된 메시지 → poison, 무한 재전달 방지를 위해 버림
            self._logger.error("Poison message dropped", exc_info=error, extra=context)
            if not self._no_ack:
                await message.ack()
            self._dropped += 1
        else:
            self._logger.warning(
                "Message failed retrying…", exc_info=error, extra=context
            )
            if not self._no_ack:
                await message.nack(requeue=True)
            self._retried += 1

    async def _dispatch(
        self,
        payload: Any,
        message: "AbstractIncomingMessage",
    ) -> None:
        raise NotImplementedError

    @property
    def stats(self) -> dict[str, int]:
        """통계 반환."""
        return {
            "processed": self._processed,
            "retried": self._retried,
            "dropped": self._dropped,
            "failed": self._failed,
        }


class ConsumerAdapter(DeliveryAdapter):
    """콜백 기반 Consumer 어댑터.

    파싱된 메시지를 콜백으로 전달하고,
    AckPolicy에 따라 ack/nack을 결정합니다.
    """

    def __init__(
        self,
        callback: MessageCallback,
        *,
        queue_name: str,
        logger: "LoggerLike | None" = None,
        ack_policy: AckPolicy = AckPolicy.AFTER_HANDLER,
        no_ack: bool = False,
    ) -> None:
        """Initialize.

        Args:
            callback: 파싱된 메시지를 받을 콜백 (sync/async)
            queue_name: 소비 중인 큐 이름
            logger: Logger Capability
            ack_policy: 파싱 성공 메시지의 ack 정책
            no_ack: 브로커 auto-ack 소비 여부
        """
        super().__init__(queue_name=queue_name, logger=logger, no_ack=no_ack)
        self._callback = callback
        self._ack_policy = ack_policy

    @property
    def settles_messages(self) -> bool:
        """파싱 성공 메시지를 이 어댑터가 ack/nack 하는지 여부."""
        return not self._no_ack and self._ack_policy is AckPolicy.AFTER_HANDLER

    async def _invoke(self, payload: Any) -> None:
        result = self._callback(payload)
        if inspect.isawaitable(result):
            await result

    async def _dispatch(
        self,
        payload: Any,
        message: "AbstractIncomingMessage",
    ) -> None:
        if not self.settles_messages:
            await self._invoke(payload)
            self._processed += 1
            return

        try:
            await self._invoke(payload)
        except Exception:
            # 재전달된 메시지가 또 실패하면 requeue 하지 않음
            requeue = not message.redelivered
            self._failed += 1
            self._logger.exception(
                "Message handler failed",
                extra={
                    "topic": LOG_TOPIC,
                    "queue": self._queue_name,
                    "delivery": describe_delivery(message),
                    "requeue": requeue,
                },
            )
            await message.nack(requeue=requeue)
            return

        await message.ack()
        self._processed += 1
