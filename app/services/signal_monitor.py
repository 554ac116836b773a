"""
임시 신호 만료 모니터링 서비스

종료 신호(stopEdit, dragEnd, stopTyping)가 유실된 채 연결만 살아 있는 경우,
일정 시간 갱신되지 않은 표시에 대해 합성 종료 신호를 방에 보낸다.
"""

import asyncio
from typing import Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.websockets.connection_manager import ConnectionManager

logger = get_logger(__name__)


class SignalMonitor:
    """오래된 편집/드래그/타이핑 표시 정리"""

    def __init__(
        self,
        manager: ConnectionManager,
        idle_timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ):
        self.manager = manager
        self.idle_timeout = settings.signal_idle_timeout_seconds if idle_timeout is None else idle_timeout
        self.interval = settings.signal_sweep_interval_seconds if interval is None else interval
        self.running = False
        self.task = None

    async def start(self):
        """모니터링 시작"""
        if self.running:
            logger.warning("Signal monitor is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._monitor())
        logger.info(f"Signal monitor started (idle timeout {self.idle_timeout}s)")

    async def stop(self):
        """모니터링 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Signal monitor stopped")

    def sweep(self, now: Optional[float] = None) -> int:
        """
        만료된 신호마다 종료 신호를 전송합니다.

        Returns:
            int: 정리한 신호 수
        """
        expired = self.manager.signals.pop_expired(self.idle_timeout, now=now)
        for signal in expired:
            self.manager.emit_signal_stop(signal)
            logger.info(
                f"Synthetic stop for stale {signal.kind} signal of user {signal.user_id} in {signal.room}",
                extra={"event_type": "signal_timeout", "room": signal.room, "subject": signal.subject}
            )
        return len(expired)

    async def _monitor(self):
        try:
            while self.running:
                await asyncio.sleep(self.interval)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Error in signal monitor: {e}")
        except asyncio.CancelledError:
            logger.info("Signal monitor cancelled")
            raise
