from apps.kpr_amqp.presentation.adapters.consumer_adapter import (
    ConsumerAdapter,
    DeliveryAdapter,
    decode_payload,
)
from apps.kpr_amqp.presentation.adapters.message_stream import (
    MessageStream,
    ReceivedMessage,
)

__all__ = [
    "ConsumerAdapter",
    "DeliveryAdapter",
    "decode_payload",
    "MessageStream",
    "ReceivedMessage",
]
