"""QueueBinding 테스트."""

from __future__ import annotations

import logging
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from aio_pika import DeliveryMode

from apps.kpr_amqp.infrastructure.messaging.queue_binding import QueueBinding
from apps.kpr_amqp.presentation.adapters.message_stream import MessageStream
from apps.kpr_amqp.setup.config import AckPolicy


class TestQueueBinding:
    """QueueBinding 테스트."""

    @pytest.fixture
    def binding(
        self,
        mock_channel: AsyncMock,
        mock_queue: AsyncMock,
        test_logger: logging.Logger,
    ) -> QueueBinding:
        return QueueBinding(
            channel=mock_channel,
            name="jobs",
            queue=mock_queue,
            logger=test_logger,
        )

    @pytest.mark.asyncio
    async def test_consume_registers_adapter(
        self,
        binding: QueueBinding,
        mock_queue: AsyncMock,
        make_message: Callable[..., MagicMock],
    ) -> None:
        """consume → 옵션 그대로 queue.consume에 전달, consumer tag 반환."""
        callback = AsyncMock()

        tag = await binding.consume(callback, options={"exclusive": True})

        assert tag == "ctag-1"
        on_message = mock_queue.consume.await_args.args[0]
        assert mock_queue.consume.await_args.kwargs == {"exclusive": True}

        message = make_message({"id": 1})
        await on_message(message)
        callback.assert_awaited_once_with({"id": 1})
        message.ack.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_consume_uses_binding_ack_policy(
        self,
        mock_channel: AsyncMock,
        mock_queue: AsyncMock,
        make_message: Callable[..., MagicMock],
    ) -> None:
        """바인딩의 ack 정책 적용."""
        binding = QueueBinding(
            channel=mock_channel,
            name="jobs",
            queue=mock_queue,
            ack_policy=AckPolicy.DELEGATE,
        )
        await binding.consume(AsyncMock())
        on_message = mock_queue.consume.await_args.args[0]

        message = make_message({"id": 1})
        await on_message(message)

        message.ack.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_consume_logs_listening(
        self,
        binding: QueueBinding,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        await binding.consume(AsyncMock())

        record = next(r for r in caplog.records if r.getMessage() == "Listening")
        assert record.topic == "AMQP Consume"
        assert record.queue == "jobs"

    @pytest.mark.asyncio
    async def test_publish_uses_queue_name_as_routing_key(
        self,
        binding: QueueBinding,
        mock_exchange: AsyncMock,
    ) -> None:
        """jobs 큐에 {"id": 1} 발행 → routing key "jobs", 본문 {"id":1}."""
        await binding.publish(
            {"id": 1},
            options={"delivery_mode": DeliveryMode.PERSISTENT},
        )

        message = mock_exchange.publish.await_args.args[0]
        assert message.body == b'{"id":1}'
        assert mock_exchange.publish.await_args.kwargs == {"routing_key": "jobs"}

    @pytest.mark.asyncio
    async def test_publish_reuses_exchange_lookup(
        self,
        binding: QueueBinding,
        mock_channel: AsyncMock,
    ) -> None:
        """바인딩의 발행자가 exchange 조회 결과를 재사용."""
        await binding.publish({"id": 1}, exchange="jobs.direct")
        await binding.publish({"id": 2}, exchange="jobs.direct")

        mock_channel.get_exchange.assert_awaited_once_with("jobs.direct")

    def test_stream(self, binding: QueueBinding) -> None:
        """stream → MessageStream 생성."""
        stream = binding.stream(maxsize=5, options={"exclusive": True})

        assert isinstance(stream, MessageStream)
        assert stream.consumer_tag is None

    def test_equality_on_channel_and_name(
        self,
        mock_channel: AsyncMock,
    ) -> None:
        """(channel, name)이 같으면 동일한 바인딩."""
        first = QueueBinding(channel=mock_channel, name="jobs", queue=AsyncMock())
        second = QueueBinding(channel=mock_channel, name="jobs", queue=AsyncMock())
        other = QueueBinding(channel=mock_channel, name="other", queue=AsyncMock())

        assert first == second
        assert first != other
