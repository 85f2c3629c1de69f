"""Connection Readiness.

브로커가 준비될 때까지 연결을 반복 시도합니다.

- 실패한 시도는 DEBUG로만 기록하고 삼킵니다.
- 매 실패 후 경과 시간을 확인하고, timeout 이상이면 BrokerUnavailableError.
- 별도의 backoff 없이 즉시 재시도합니다.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Union

import aio_pika

from apps.kpr_amqp.exceptions import BrokerUnavailableError
from apps.kpr_amqp.setup.config import AmqpSettings, LoggerLike, Settings

if TYPE_CHECKING:
    from aio_pika.abc import AbstractRobustConnection

LOG_TOPIC = "AMQP Connect"

module_logger = logging.getLogger(__name__)


async def connect_with_retry(
    settings: Union[Settings, AmqpSettings],
    start: float,
    *,
    logger: LoggerLike | None = None,
) -> "AbstractRobustConnection":
    """브로커 연결 (timeout 내 재시도).

    Args:
        settings: 메시징 설정 (url, timeout, heartbeat)
        start: 준비 구간 시작 시각 (time.monotonic())
        logger: Logger Capability

    Returns:
        연결된 Connection

    Raises:
        BrokerUnavailableError: timeout 내에 연결하지 못한 경우
    """
    amqp = settings.amqp if isinstance(settings, Settings) else settings
    log = logger or module_logger
    attempts = 0

    while True:
        attempts += 1
        try:
            connection = await aio_pika.connect_robust(
                amqp.url,
                heartbeat=amqp.heartbeat,
            )
        except Exception as e:
            # 연결 거부, DNS 실패, 핸드셰이크 실패 등 모두 재시도
            log.debug(
                "AMQP connection attempt failed",
                extra={"topic": LOG_TOPIC, "attempt": attempts, "error": str(e)},
            )
            elapsed = time.monotonic() - start
            if elapsed >= amqp.timeout:
                raise BrokerUnavailableError(amqp.url, attempts, elapsed) from e
            continue

        log.debug(
            "AMQP connected",
            extra={"topic": LOG_TOPIC, "attempt": attempts},
        )
        return connection
