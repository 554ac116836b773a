import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from app.websockets.session import Identity


@dataclass(frozen=True)
class ActiveSignal:
    """아직 종료 신호가 오지 않은 임시 표시 (편집/드래그/타이핑)"""
    session_id: str
    identity: Identity
    room: str
    kind: str
    subject: str

    @property
    def user_id(self) -> str:
        return self.identity.user_id


class SignalTracker:
    """
    활성 임시 신호와 마지막 갱신 시각을 기억합니다.

    라우터 자체는 상태가 없고, 이 트래커는 종료 신호가 유실됐을 때
    합성 종료 신호를 보내기 위한 용도로만 쓰인다.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._signals: Dict[ActiveSignal, float] = {}

    def touch(self, signal: ActiveSignal):
        self._signals[signal] = self._clock()

    def clear(self, signal: ActiveSignal) -> bool:
        return self._signals.pop(signal, None) is not None

    def clear_session(self, session_id: str, room: Optional[str] = None) -> List[ActiveSignal]:
        """세션의 활성 신호를 제거하고 반환합니다. room을 주면 그 방만."""
        cleared = [
            signal for signal in self._signals
            if signal.session_id == session_id and (room is None or signal.room == room)
        ]
        for signal in cleared:
            del self._signals[signal]
        return cleared

    def pop_expired(self, timeout: float, now: Optional[float] = None) -> List[ActiveSignal]:
        """timeout초 이상 갱신되지 않은 신호를 제거하고 반환합니다."""
        now = self._clock() if now is None else now
        expired = [
            signal for signal, touched_at in self._signals.items()
            if now - touched_at >= timeout
        ]
        for signal in expired:
            del self._signals[signal]
        return expired

    def active(self) -> List[ActiveSignal]:
        return list(self._signals)

    def __len__(self):
        return len(self._signals)
