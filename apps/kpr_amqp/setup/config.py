"""Configuration.

환경 변수 또는 설정 딕셔너리 기반 설정입니다.

설정 딕셔너리 형식:
    {
        "amqp": {"url": ..., "timeout": ..., "heartbeat": ...},
        "log": {"level": ..., "json": ...} | logging.Logger,
    }
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from typing import Any, Union

from apps.kpr_amqp.exceptions import ConfigurationError

REQUIRED_AMQP_FIELDS = ("url", "timeout", "heartbeat")


class AckPolicy(str, Enum):
    """파싱에 성공한 메시지의 ack 정책.

    - AFTER_HANDLER: 콜백 성공 → ack, 콜백 실패 → nack
    - DELEGATE: 래퍼는 ack하지 않음 (no_ack 소비 또는 호출자가 직접 처리)
    """

    AFTER_HANDLER = "after_handler"
    DELEGATE = "delegate"


@dataclass(frozen=True)
class AmqpSettings:
    """브로커 연결 설정.

    timeout, heartbeat 단위는 초입니다.
    """

    url: str
    timeout: float = 30.0
    heartbeat: int = 60
    prefetch_count: int | None = None
    ack_policy: AckPolicy = AckPolicy.AFTER_HANDLER

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url:
            raise ConfigurationError("amqp.url must be a non-empty string")
        if self.timeout <= 0:
            raise ConfigurationError("amqp.timeout must be positive")
        if self.heartbeat < 0:
            raise ConfigurationError("amqp.heartbeat must not be negative")
        if self.prefetch_count is not None and self.prefetch_count <= 0:
            raise ConfigurationError("amqp.prefetch_count must be positive")
        if not isinstance(self.ack_policy, AckPolicy):
            try:
                object.__setattr__(self, "ack_policy", AckPolicy(self.ack_policy))
            except ValueError as e:
                raise ConfigurationError(
                    f"amqp.ack_policy must be one of "
                    f"{[p.value for p in AckPolicy]}"
                ) from e


@dataclass(frozen=True)
class LogSettings:
    """로깅 설정."""

    level: str = "INFO"
    json: bool = True
    name: str = "kpr.amqp"
    # True면 name 로거에 핸들러를 붙임 (루트 로거는 건드리지 않음)
    configure: bool = False


LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


@dataclass(frozen=True)
class Settings:
    """메시징 설정.

    세션 동안 변경되지 않습니다. log에는 LogSettings 또는
    이미 생성된 Logger가 들어갈 수 있습니다.
    """

    amqp: AmqpSettings
    log: LogSettings | LoggerLike = field(default_factory=LogSettings)

    # Service
    service_name: str = "kpr-amqp"
    service_version: str = "1.0.0"
    environment: str = "dev"

    def with_logger(self, logger: LoggerLike) -> Settings:
        """Logger가 주입된 복사본 반환."""
        return replace(self, log=logger)

    @classmethod
    def from_mapping(cls, configuration: Mapping[str, Any]) -> Settings:
        """설정 딕셔너리에서 Settings 생성.

        Raises:
            ConfigurationError: 필수 필드 누락
        """
        amqp = configuration.get("amqp")
        if not isinstance(amqp, Mapping):
            raise ConfigurationError("missing configuration section: amqp")

        missing = [
            f"amqp.{name}" for name in REQUIRED_AMQP_FIELDS if amqp.get(name) is None
        ]
        if missing:
            raise ConfigurationError(
                f"missing configuration field(s): {', '.join(missing)}"
            )

        try:
            amqp_settings = AmqpSettings(
                url=amqp["url"],
                timeout=float(amqp["timeout"]),
                heartbeat=int(amqp["heartbeat"]),
                prefetch_count=(
                    int(amqp["prefetch_count"])
                    if amqp.get("prefetch_count") is not None
                    else None
                ),
                ack_policy=amqp.get("ack_policy", AckPolicy.AFTER_HANDLER),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid amqp configuration: {e}") from e

        log = configuration.get("log")
        if log is None:
            log_settings: LogSettings | LoggerLike = LogSettings()
        elif isinstance(log, (logging.Logger, logging.LoggerAdapter)):
            log_settings = log
        elif isinstance(log, Mapping):
            try:
                log_settings = LogSettings(**log)
            except TypeError as e:
                raise ConfigurationError(f"invalid log configuration: {e}") from e
        else:
            raise ConfigurationError(
                "log must be a mapping or a logging.Logger instance"
            )

        extra = {
            key: configuration[key]
            for key in ("service_name", "service_version", "environment")
            if key in configuration
        }
        return cls(amqp=amqp_settings, log=log_settings, **extra)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@lru_cache
def get_settings() -> Settings:
    """설정 싱글톤 반환."""
    prefetch = os.getenv("AMQP_PREFETCH_COUNT")
    return Settings(
        amqp=AmqpSettings(
            url=os.environ["AMQP_URL"],
            timeout=float(os.getenv("AMQP_TIMEOUT", "30")),
            heartbeat=int(os.getenv("AMQP_HEARTBEAT", "60")),
            prefetch_count=int(prefetch) if prefetch else None,
            ack_policy=os.getenv("AMQP_ACK_POLICY", "after_handler"),
        ),
        log=LogSettings(
            level=os.getenv("LOG_LEVEL", "INFO"),
            json=_env_bool(os.getenv("LOG_JSON", "true")),
            configure=_env_bool(os.getenv("LOG_CONFIGURE", "false")),
        ),
        service_name=os.getenv("SERVICE_NAME", "kpr-amqp"),
        service_version=os.getenv("SERVICE_VERSION", "1.0.0"),
        environment=os.getenv("ENVIRONMENT", "dev"),
    )
