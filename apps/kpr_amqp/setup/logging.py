"""Logging Configuration.

ECS 호환 JSON 로깅 설정입니다.

메시징 컴포넌트는 표준 logging.Logger를 Logger Capability로 사용합니다.
구조화 필드는 extra로 전달합니다 (topic: "AMQP Queue", "AMQP Consume" 등).

라이브러리로 쓰이므로 루트 로거는 건드리지 않고,
LogSettings.name 로거에만 핸들러를 붙입니다.
"""

from __future__ import annotations

import logging
import sys

import ecs_logging

from apps.kpr_amqp.setup.config import LoggerLike, LogSettings, Settings

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class ServiceFilter(logging.Filter):
    """레코드에 서비스 메타데이터 추가."""

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.service = {
            "name": settings.service_name,
            "version": settings.service_version,
            "environment": settings.environment,
        }

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


def setup_logging(settings: Settings) -> logging.Logger:
    """로깅 설정.

    재호출 시 이전에 붙인 핸들러를 교체합니다.
    """
    log_settings = (
        settings.log if isinstance(settings.log, LogSettings) else LogSettings()
    )

    handler = logging.StreamHandler(sys.stdout)
    if log_settings.json:
        # ECS JSON 포맷터
        handler.setFormatter(ecs_logging.StdlibFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    handler.addFilter(ServiceFilter(settings))
    handler.kpr_amqp = True  # type: ignore[attr-defined]

    logger = logging.getLogger(log_settings.name)
    logger.setLevel(log_settings.level)
    for old in [h for h in logger.handlers if getattr(h, "kpr_amqp", False)]:
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.propagate = False

    # 외부 라이브러리 로그 레벨 조정
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    return logger


def resolve_logger(settings: Settings) -> LoggerLike:
    """Logger Capability 반환.

    설정에 Logger가 주입되어 있으면 그대로 사용하고,
    LogSettings이면 이름 있는 Logger를 반환합니다 (configure=True면 구성 후).
    """
    if isinstance(settings.log, (logging.Logger, logging.LoggerAdapter)):
        return settings.log

    if settings.log.configure:
        return setup_logging(settings)
    return logging.getLogger(settings.log.name)
