from typing import Dict, FrozenSet, Set


class RoomRegistry:
    """
    방 이름 ↔ 세션 ID 인접 구조.

    모든 연산은 동기 함수다. 이벤트 루프 위에서 await 없이 끝나므로
    다른 코루틴이 중간 상태(한쪽 맵만 갱신된 상태)를 관찰할 수 없다.
    방은 첫 join 때 생기고 마지막 세션이 나가면 사라진다.
    """

    def __init__(self):
        # 방별 세션: {room: {session_id}}
        self._room_members: Dict[str, Set[str]] = {}
        # 세션별 방: {session_id: {room}}
        self._session_rooms: Dict[str, Set[str]] = {}

    def join(self, session_id: str, room: str) -> bool:
        """세션을 방에 추가합니다. 이미 참가 중이면 False (no-op)."""
        members = self._room_members.setdefault(room, set())
        if session_id in members:
            return False
        members.add(session_id)
        self._session_rooms.setdefault(session_id, set()).add(room)
        return True

    def leave(self, session_id: str, room: str) -> bool:
        """세션을 방에서 제거합니다. 참가 중이 아니었으면 False (no-op)."""
        members = self._room_members.get(room)
        if not members or session_id not in members:
            return False
        members.discard(session_id)
        if not members:
            del self._room_members[room]

        rooms = self._session_rooms.get(session_id)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._session_rooms[session_id]
        return True

    def remove_session(self, session_id: str) -> Set[str]:
        """세션을 모든 방에서 제거하고, 참가했던 방 목록을 반환합니다."""
        rooms = self._session_rooms.pop(session_id, set())
        for room in rooms:
            members = self._room_members.get(room)
            if members is None:
                continue
            members.discard(session_id)
            if not members:
                del self._room_members[room]
        return rooms

    def members(self, room: str) -> FrozenSet[str]:
        """방에 참가한 세션 ID 스냅샷"""
        return frozenset(self._room_members.get(room, ()))

    def rooms_of(self, session_id: str) -> FrozenSet[str]:
        return frozenset(self._session_rooms.get(session_id, ()))

    def is_member(self, session_id: str, room: str) -> bool:
        return session_id in self._room_members.get(room, ())

    def has_room(self, room: str) -> bool:
        return room in self._room_members

    def room_names(self) -> FrozenSet[str]:
        return frozenset(self._room_members)

    @property
    def room_count(self) -> int:
        return len(self._room_members)

    @property
    def session_count(self) -> int:
        return len(self._session_rooms)
