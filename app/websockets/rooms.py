"""
방 이름 규칙

- 프로젝트 협업 방: project-<projectId>
- 사용자 직접 알림 방: user-<userId>

ID는 영속 계층(MongoDB)이 쓰는 ID 그대로이며, 공백을 포함할 수 없다.
"""

from typing import Any, Tuple

from app.core.errors import RoomTargetInvalid

PROJECT_ROOM_PREFIX = "project-"
USER_ROOM_PREFIX = "user-"

ROOM_KIND_PROJECT = "project"
ROOM_KIND_USER = "user"

_PREFIXES = {
    PROJECT_ROOM_PREFIX: ROOM_KIND_PROJECT,
    USER_ROOM_PREFIX: ROOM_KIND_USER,
}


def _room_key(prefix: str, value: Any) -> str:
    if value is None:
        raise RoomTargetInvalid(f"{prefix}None")
    key = str(value).strip()
    if not key or any(ch.isspace() for ch in key):
        raise RoomTargetInvalid(f"{prefix}{value}")
    return key


def project_room(project_id: Any) -> str:
    return f"{PROJECT_ROOM_PREFIX}{_room_key(PROJECT_ROOM_PREFIX, project_id)}"


def user_room(user_id: Any) -> str:
    return f"{USER_ROOM_PREFIX}{_room_key(USER_ROOM_PREFIX, user_id)}"


def parse_room(name: str) -> Tuple[str, str]:
    """
    방 이름을 (종류, 키)로 분해합니다.

    Raises:
        RoomTargetInvalid: 두 규칙 어디에도 맞지 않는 이름
    """
    for prefix, kind in _PREFIXES.items():
        if isinstance(name, str) and name.startswith(prefix):
            return kind, _room_key(prefix, name[len(prefix):])
    raise RoomTargetInvalid(str(name))


def is_project_room(name: str) -> bool:
    return isinstance(name, str) and name.startswith(PROJECT_ROOM_PREFIX)
