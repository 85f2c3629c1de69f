"""Message Stream.

콜백 fan-out 대신 bounded 큐를 통한 메시지 전달입니다.

핸들러가 느리면 버퍼가 가득 차고, 버퍼에 자리가 날 때까지
브로커 콜백이 대기합니다 (prefetch_count와 함께 backpressure 역할).

Usage:
    async with binding.stream(maxsize=10) as stream:
        async for received in stream:
            async with received.process():
                await handle(received.payload)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from apps.kpr_amqp.presentation.adapters.consumer_adapter import (
    LOG_TOPIC,
    DeliveryAdapter,
)

if TYPE_CHECKING:
    from aio_pika.abc import AbstractIncomingMessage, AbstractQueue

    from apps.kpr_amqp.setup.config import LoggerLike


DEFAULT_MAXSIZE = 100


@dataclass(frozen=True)
class ReceivedMessage:
    """파싱된 메시지와 원본 delivery.

    ack/nack은 수신자가 결정합니다.
    """

    payload: Any
    delivery: "AbstractIncomingMessage"

    async def ack(self) -> None:
        await self.delivery.ack()

    async def nack(self, requeue: bool = True) -> None:
        await self.delivery.nack(requeue=requeue)

    def process(self, requeue: bool = False, ignore_processed: bool = True) -> Any:
        """정상 종료 시 ack, 예외 시 reject 하는 context manager."""
        return self.delivery.process(
            requeue=requeue,
            ignore_processed=ignore_processed,
        )


class MessageStream(DeliveryAdapter):
    """Bounded 버퍼 기반 메시지 스트림."""

    def __init__(
        self,
        queue: "AbstractQueue",
        *,
        logger: "LoggerLike | None" = None,
        maxsize: int = DEFAULT_MAXSIZE,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize.

        Args:
            queue: 소비할 aio_pika 큐
            logger: Logger Capability
            maxsize: 버퍼 크기 (0 이하 불가)
            options: queue.consume 옵션
        """
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")

        self._options = dict(options or {})
        super().__init__(
            queue_name=queue.name,
            logger=logger,
            no_ack=bool(self._options.get("no_ack", False)),
        )
        self._queue = queue
        self._buffer: asyncio.Queue[ReceivedMessage] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()
        self._consumer_tag: str | None = None

    @property
    def consumer_tag(self) -> str | None:
        return self._consumer_tag

    async def start(self) -> None:
        """메시지 소비 시작."""
        if self._consumer_tag is not None:
            return
        self._closed.clear()
        self._consumer_tag = await self._queue.consume(
            self.on_message,
            **self._options,
        )
        self._logger.debug(
            "Listening",
            extra={"topic": LOG_TOPIC, "queue": self._queue_name, "stream": True},
        )

    async def close(self) -> None:
        """소비 중지 및 미처리 메시지 requeue."""
        self._closed.set()
        if self._consumer_tag is not None:
            tag, self._consumer_tag = self._consumer_tag, None
            await self._queue.cancel(tag)

        await self._requeue_buffered()

    async def _requeue_buffered(self) -> None:
        while not self._buffer.empty():
            received = self._buffer.get_nowait()
            if not self._no_ack:
                await received.nack(requeue=True)

    async def _dispatch(
        self,
        payload: Any,
        message: "AbstractIncomingMessage",
    ) -> None:
        if self._closed.is_set():
            if not self._no_ack:
                await message.nack(requeue=True)
            return
        # 버퍼가 가득 차면 여기서 대기
        await self._buffer.put(ReceivedMessage(payload=payload, delivery=message))
        if self._closed.is_set():
            # 대기 중 close된 경우: close의 drain 이후에 들어간 메시지
            await self._requeue_buffered()
            return
        self._processed += 1

    async def __aenter__(self) -> MessageStream:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> ReceivedMessage:
        if not self._buffer.empty():
            return self._buffer.get_nowait()
        if self._closed.is_set():
            raise StopAsyncIteration

        getter = asyncio.ensure_future(self._buffer.get())
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, closer},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (getter, closer):
                if not task.done():
                    task.cancel()

        if getter in done:
            return getter.result()
        raise StopAsyncIteration
