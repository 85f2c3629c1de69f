"""Messaging Exceptions.

메시징 클라이언트에서 발생하는 예외입니다.

| 예외 | 발생 위치 | 처리 |
|------|----------|------|
| ConfigurationError | Settings 생성 | 호출자에게 전파 (fail fast) |
| BrokerUnavailableError | connect_with_retry | 호출자에게 전파 |
| PayloadParseError | ConsumerAdapter | 내부에서 ack/nack 처리 (전파 X) |
| ProtocolError | aio_pika | 감싸지 않고 그대로 전파 |
"""

from __future__ import annotations

from aio_pika.exceptions import AMQPError

# 브로커 프로토콜 오류는 aio_pika 예외를 그대로 사용
ProtocolError = AMQPError


class MessagingError(Exception):
    """메시징 예외 Base."""


class ConfigurationError(MessagingError, ValueError):
    """설정 누락/오류."""


class BrokerUnavailableError(MessagingError, ConnectionError):
    """타임아웃 내에 브로커 연결 실패."""

    def __init__(self, url: str, attempts: int, elapsed: float) -> None:
        self.url = url
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"AMQP server not available after {attempts} attempt(s) "
            f"in {elapsed:.3f}s"
        )


class PayloadParseError(MessagingError, ValueError):
    """메시지 본문이 JSON 문서가 아님."""


__all__ = [
    "MessagingError",
    "ConfigurationError",
    "BrokerUnavailableError",
    "PayloadParseError",
    "ProtocolError",
]
