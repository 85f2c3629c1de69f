"""Messaging Infrastructure.

브로커 연결과 큐 바인딩을 담당합니다.

- connect_with_retry: timeout 내 브로커 연결 재시도
- MessagingContext: 연결/채널 생성, 큐 선언
- QueueBinding: 큐 단위 consume/publish
- JsonPublisher: JSON 직렬화 발행
"""

from apps.kpr_amqp.infrastructure.messaging.connection import connect_with_retry
from apps.kpr_amqp.infrastructure.messaging.context import (
    MessagingContext,
    create_context,
)
from apps.kpr_amqp.infrastructure.messaging.publisher import (
    JsonPublisher,
    encode_message,
)
from apps.kpr_amqp.infrastructure.messaging.queue_binding import QueueBinding

__all__ = [
    "connect_with_retry",
    "MessagingContext",
    "create_context",
    "JsonPublisher",
    "encode_message",
    "QueueBinding",
]
