import pytest
from bson import ObjectId

from app.core.errors import RoomTargetInvalid
from app.websockets.registry import RoomRegistry
from app.websockets.rooms import is_project_room, parse_room, project_room, user_room


class TestRoomNaming:
    """방 이름 규칙 테스트"""

    def test_project_and_user_room_names(self):
        """프로젝트/사용자 방 이름 생성 테스트"""
        assert project_room("42") == "project-42"
        assert project_room(42) == "project-42"
        assert user_room("abc") == "user-abc"

    def test_object_id_is_used_verbatim(self):
        """ObjectId는 문자열 그대로 방 이름에 쓰인다"""
        oid = ObjectId()
        assert project_room(oid) == f"project-{oid}"

    @pytest.mark.parametrize("value", [None, "", "  ", "4 2"])
    def test_invalid_ids_rejected(self, value):
        """빈 값이나 공백이 포함된 ID 거부 테스트"""
        with pytest.raises(RoomTargetInvalid):
            project_room(value)

    def test_parse_room(self):
        """방 이름 분해 테스트"""
        assert parse_room("project-42") == ("project", "42")
        assert parse_room("user-7") == ("user", "7")

    @pytest.mark.parametrize("name", ["room-1", "project-", "", "42"])
    def test_parse_room_rejects_unknown_shapes(self, name):
        """규칙에 맞지 않는 방 이름 거부 테스트"""
        with pytest.raises(RoomTargetInvalid):
            parse_room(name)

    def test_is_project_room(self):
        assert is_project_room("project-1")
        assert not is_project_room("user-1")


class TestRoomRegistry:
    """방 레지스트리 테스트"""

    def test_join_is_idempotent(self):
        """같은 방에 두 번 참가해도 멤버는 하나"""
        registry = RoomRegistry()

        assert registry.join("s1", "project-1") is True
        assert registry.join("s1", "project-1") is False
        assert registry.members("project-1") == frozenset({"s1"})
        assert registry.rooms_of("s1") == frozenset({"project-1"})

    def test_leave_not_joined_is_noop(self):
        """참가하지 않은 방에서 나가기는 no-op"""
        registry = RoomRegistry()
        registry.join("s1", "project-1")

        assert registry.leave("s1", "project-2") is False
        assert registry.leave("s2", "project-1") is False
        assert registry.is_member("s1", "project-1")

    def test_empty_room_is_removed(self):
        """마지막 멤버가 나가면 방이 사라진다"""
        registry = RoomRegistry()
        registry.join("s1", "project-1")
        registry.leave("s1", "project-1")

        assert not registry.has_room("project-1")
        assert registry.room_count == 0
        assert registry.session_count == 0

    def test_remove_session_from_all_rooms(self):
        """세션 제거 시 모든 방에서 빠진다"""
        registry = RoomRegistry()
        registry.join("s1", "project-1")
        registry.join("s1", "project-2")
        registry.join("s1", "user-a")
        registry.join("s2", "project-1")

        rooms = registry.remove_session("s1")

        assert rooms == {"project-1", "project-2", "user-a"}
        assert registry.members("project-1") == frozenset({"s2"})
        assert registry.room_names() == frozenset({"project-1"})
        assert registry.rooms_of("s1") == frozenset()

    def test_remove_unknown_session(self):
        registry = RoomRegistry()
        assert registry.remove_session("ghost") == set()

    def test_members_snapshot_is_immutable(self):
        """members()는 이후 변경에 영향받지 않는 스냅샷"""
        registry = RoomRegistry()
        registry.join("s1", "project-1")
        snapshot = registry.members("project-1")

        registry.join("s2", "project-1")

        assert snapshot == frozenset({"s1"})
        assert registry.members("project-1") == frozenset({"s1", "s2"})
