"""Messaging Context.

설정과 Logger를 묶은 세션 단위 컨텍스트입니다.

    Settings
        │
        ▼
    connect_with_retry ──▶ Connection ──▶ Channel
                                             │
                                             ▼
                                     assert_queue ──▶ QueueBinding
                                                        ├── consume
                                                        ├── publish
                                                        └── stream

connection() 호출마다 독립된 Connection/Channel을 생성합니다 (풀링 없음).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Union

from apps.kpr_amqp.infrastructure.messaging.connection import connect_with_retry
from apps.kpr_amqp.infrastructure.messaging.queue_binding import QueueBinding
from apps.kpr_amqp.setup.config import LoggerLike, Settings
from apps.kpr_amqp.setup.lifecycle import Lifecycle
from apps.kpr_amqp.setup.logging import resolve_logger

if TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel

module_logger = logging.getLogger(__name__)

Closer = Callable[[], Awaitable[None]]

QUEUE_TOPIC = "AMQP Queue"


class MessagingContext:
    """메시징 컨텍스트.

    connection()으로 채널을 열고, assert_queue()로 큐에 바인딩합니다.
    """

    def __init__(
        self,
        settings: Settings,
        lifecycle: Lifecycle,
        logger: LoggerLike,
    ) -> None:
        """Initialize.

        Args:
            settings: Logger가 주입된 설정
            lifecycle: Shutdown hook 레지스트리
            logger: Logger Capability
        """
        self._settings = settings
        self._lifecycle = lifecycle
        self._logger = logger
        self._closers: list[tuple[Closer, Callable[[], None]]] = []

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def logger(self) -> LoggerLike:
        return self._logger

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    async def connection(self) -> "AbstractChannel":
        """브로커 연결 후 채널 반환.

        Raises:
            BrokerUnavailableError: timeout 내에 연결하지 못한 경우
        """
        connection = await connect_with_retry(
            self._settings,
            time.monotonic(),
            logger=self._logger,
        )
        try:
            channel = await connection.channel()
            prefetch_count = self._settings.amqp.prefetch_count
            if prefetch_count is not None:
                # Prefetch 설정 (한 번에 처리할 메시지 수)
                await channel.set_qos(prefetch_count=prefetch_count)
        except BaseException:
            await connection.close()
            raise

        closed = False

        async def close_resources() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            # 채널 → 연결 순서로 종료 (채널 종료 실패해도 연결은 닫음)
            try:
                await channel.close()
            finally:
                await connection.close()
            self._logger.debug(
                "AMQP connection closed",
                extra={"topic": "AMQP Connect"},
            )

        unsubscribe = self._lifecycle.on_shutdown(close_resources)
        self._closers.append((close_resources, unsubscribe))
        return channel

    async def assert_queue(
        self,
        channel: "AbstractChannel",
        name: str,
        opts: Mapping[str, Any] | None = None,
    ) -> QueueBinding:
        """큐 선언 후 consume/publish 바인딩 반환.

        Args:
            channel: connection()이 반환한 채널
            name: 큐 이름
            opts: {"queue": {durable, exclusive, auto_delete, arguments}}

        Raises:
            aio_pika.exceptions.ChannelPreconditionFailed: 기존 큐와 옵션 충돌
        """
        queue_options = dict((opts or {}).get("queue") or {})
        queue = await channel.declare_queue(name, **queue_options)
        self._logger.debug("asserted", extra={"topic": QUEUE_TOPIC, "queue": name})
        return QueueBinding(
            channel=channel,
            name=name,
            queue=queue,
            logger=self._logger,
            ack_policy=self._settings.amqp.ack_policy,
        )

    async def close(self) -> None:
        """이 컨텍스트가 연 채널/연결을 모두 종료."""
        while self._closers:
            close_resources, unsubscribe = self._closers.pop()
            unsubscribe()
            try:
                await close_resources()
            except Exception:
                # 하나가 실패해도 나머지 연결은 정리
                self._logger.exception(
                    "AMQP connection close failed",
                    extra={"topic": "AMQP Connect"},
                )

    async def __aenter__(self) -> MessagingContext:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


async def create_context(
    configuration: Union[Settings, Mapping[str, Any]],
    *,
    lifecycle: Lifecycle | None = None,
) -> MessagingContext:
    """MessagingContext 생성.

    Args:
        configuration: Settings 또는 설정 딕셔너리
        lifecycle: Shutdown hook 레지스트리 (없으면 SIGINT에 연결된 새 Lifecycle)

    Raises:
        ConfigurationError: 설정 누락/오류
    """
    settings = (
        configuration
        if isinstance(configuration, Settings)
        else Settings.from_mapping(configuration)
    )
    logger = resolve_logger(settings)

    if lifecycle is None:
        lifecycle = Lifecycle()
        try:
            lifecycle.install()
        except (NotImplementedError, RuntimeError, ValueError) as e:
            # Windows 또는 메인 스레드가 아닌 경우 시그널 핸들러 등록 불가
            module_logger.warning(
                "Signal handlers not installed",
                extra={"error": str(e)},
            )

    return MessagingContext(settings.with_logger(logger), lifecycle, logger)
