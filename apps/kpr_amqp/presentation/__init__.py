"""Presentation Layer.

Message Consumer에서의 Presentation Layer:
- ConsumerAdapter: decode, poison 분류, dispatch, ack/nack 결정
- MessageStream: bounded 버퍼를 통한 메시지 전달
"""
