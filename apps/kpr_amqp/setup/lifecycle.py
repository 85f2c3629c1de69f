"""Lifecycle.

프로세스 종료 시그널에 대한 shutdown hook 레지스트리입니다.

전역 process 시그널 대신 MessagingContext에 주입되어,
여러 컨텍스트가 각자 hook을 등록/해제할 수 있습니다.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
from typing import Any, Awaitable, Callable, Iterable, Union

logger = logging.getLogger(__name__)

ShutdownHandler = Callable[[], Union[Awaitable[Any], Any]]


class Lifecycle:
    """Shutdown hook 레지스트리.

    등록된 handler는 최대 한 번 실행됩니다 (최근 등록 순).
    """

    def __init__(self) -> None:
        self._handlers: list[ShutdownHandler] = []
        self._installed: list[tuple[asyncio.AbstractEventLoop, int]] = []
        self._shutdown_task: asyncio.Task[None] | None = None

    def on_shutdown(self, handler: ShutdownHandler) -> Callable[[], None]:
        """Shutdown handler 등록.

        Returns:
            등록 해제 함수
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def pending(self) -> int:
        """아직 실행되지 않은 handler 수."""
        return len(self._handlers)

    def install(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[int] = (signal.SIGINT,),
    ) -> None:
        """시그널 핸들러 등록."""
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(sig, self._handle_signal)
            self._installed.append((loop, sig))

    def uninstall(self) -> None:
        """시그널 핸들러 해제."""
        for loop, sig in self._installed:
            if not loop.is_closed():
                loop.remove_signal_handler(sig)
        self._installed.clear()

    def _handle_signal(self) -> None:
        logger.info("Shutdown signal received")
        if self._shutdown_task is None or self._shutdown_task.done():
            self._shutdown_task = asyncio.ensure_future(self.shutdown())

    async def shutdown(self) -> None:
        """등록된 handler를 한 번씩 실행."""
        while self._handlers:
            handler = self._handlers.pop()
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # 하나가 실패해도 나머지 리소스는 정리
                logger.exception("Shutdown handler failed")
