import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import status

from app.core.errors import TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """연결 인증 시 한 번 확정되는 사용자 신원 (세션 수명 동안 불변)"""
    user_id: str
    name: str
    avatar: str = ""

    def public(self) -> Dict[str, str]:
        """다른 클라이언트에게 노출되는 공개 정보"""
        return {"id": self.user_id, "name": self.name, "avatar": self.avatar}


class ConnectionSession:
    """
    라이브 연결 하나에 대응하는 세션.

    전송은 세션 전용 FIFO 큐와 writer 태스크 하나로 직렬화된다.
    deliver()는 동기 함수라서 "방 멤버 열거 + 큐 적재"가 await 없이 끝나고,
    같은 송신자가 같은 방에 보낸 이벤트는 보낸 순서대로 도착한다.
    """

    def __init__(
        self,
        transport: Any,
        identity: Identity,
        session_id: Optional[str] = None,
        queue_size: int = 256,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.identity = identity
        self.transport = transport
        self.connected_at = datetime.utcnow()
        self.closed = False
        self.dropped_frames = 0
        self.transport_closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._on_failure: Optional[Callable[["ConnectionSession"], Any]] = None

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    def start(self, on_failure: Optional[Callable[["ConnectionSession"], Any]] = None):
        """writer 태스크 시작"""
        if self._writer is not None:
            return
        self._on_failure = on_failure
        self._writer = asyncio.create_task(
            self._write_loop(), name=f"ws-writer-{self.session_id}"
        )

    def deliver(self, frame: Dict[str, Any]) -> bool:
        """
        프레임을 전송 큐에 넣습니다.

        Returns:
            bool: 큐에 들어갔으면 True. 종료된 세션이거나 큐가 가득 차면 False
        """
        if self.closed:
            return False
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped_frames += 1
            logger.warning(
                f"Outbound queue full for session {self.session_id}, dropping {frame.get('event')}",
                extra={"session_id": self.session_id, "dropped_frames": self.dropped_frames}
            )
            return False
        return True

    async def _write_loop(self):
        while True:
            frame = await self._queue.get()
            try:
                if self.closed:
                    continue
                await self.transport.send_json(frame)
            except Exception as e:
                failure = TransportFailure(str(e) or type(e).__name__)
                logger.warning(f"Transport failure for session {self.session_id}: {failure.message}")
                if self._on_failure is not None:
                    self._on_failure(self)
                await self.close_transport(status.WS_1011_INTERNAL_ERROR)
                return
            finally:
                self._queue.task_done()

    def close(self):
        """
        세션을 종료 상태로 만듭니다. 이후 어떤 프레임도 전송되지 않습니다.
        """
        if self.closed:
            return
        self.closed = True
        writer = self._writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()

    async def close_transport(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: Optional[str] = None):
        """
        서버 쪽에서 소켓을 닫습니다. 클라이언트는 재연결 후 방에 다시 참가해야 한다.
        이미 닫혔거나 끊긴 소켓이면 조용히 넘어간다.
        """
        if self.transport_closed:
            return
        self.transport_closed = True
        try:
            await self.transport.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Transport already gone for session {self.session_id}: {e}")

    async def drain(self):
        """지금까지 큐에 들어간 프레임이 모두 전송(또는 폐기)될 때까지 대기"""
        if self._writer is None or self._writer.done():
            return
        join_task = asyncio.create_task(self._queue.join())
        try:
            await asyncio.wait({join_task, self._writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not join_task.done():
                join_task.cancel()

    async def wait_closed(self):
        """writer 태스크 종료 대기"""
        if self._writer is None:
            return
        try:
            await self._writer
        except asyncio.CancelledError:
            pass

    def __repr__(self):
        return f"<ConnectionSession(id={self.session_id}, user_id={self.user_id}, closed={self.closed})>"
