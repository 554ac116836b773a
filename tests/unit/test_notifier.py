import pytest
from bson import ObjectId
from datetime import datetime

from app.core.errors import RoomTargetInvalid
from app.websockets import events as ev
from app.websockets.notifier import DurableChangeNotifier


@pytest.fixture
def notifier(realtime_manager) -> DurableChangeNotifier:
    return DurableChangeNotifier(realtime_manager)


@pytest.fixture
def updated_task():
    """CRUD 레이어가 커밋한 태스크 (불투명 payload)"""
    return {
        "_id": "7",
        "title": "API 문서 정리",
        "column": "done",
        "order": 2,
        "assignees": ["64a000000000000000000001"],
    }


class TestDurableChangeNotifier:
    """커밋 이후 변경 전파 테스트"""

    @pytest.mark.asyncio
    async def test_task_move_reaches_every_peer_identically(
        self, realtime_manager, notifier, connect, drain, alice, bob, carol, updated_task
    ):
        """모든 참가자가 같은 payload를 한 번씩 받고, 비참가자는 받지 않는다"""
        session_a, websocket_a = await connect(alice)
        session_b, websocket_b = await connect(bob)
        session_c, websocket_c = await connect(carol)
        realtime_manager.join(session_a, "project-42")
        realtime_manager.join(session_b, "project-42")

        delivered = notifier.task_moved("42", updated_task, old_column="todo", old_order=0)
        await drain(session_a, session_b, session_c)

        assert delivered == 2
        moved_a = websocket_a.data_of(ev.TASK_MOVED)
        moved_b = websocket_b.data_of(ev.TASK_MOVED)
        assert len(moved_a) == 1
        assert moved_a == moved_b
        assert moved_a[0]["task"] == updated_task
        assert moved_a[0]["oldColumn"] == "todo"
        assert websocket_c.sent == []

    @pytest.mark.asyncio
    async def test_late_joiner_gets_nothing_retroactively(
        self, realtime_manager, notifier, connect, drain, alice, bob, updated_task
    ):
        session_a, _ = await connect(alice)
        realtime_manager.join(session_a, "project-42")
        notifier.task_updated("42", updated_task)

        session_b, websocket_b = await connect(bob)
        realtime_manager.join(session_b, "project-42")
        await drain(session_a, session_b)

        assert websocket_b.sent == []

    @pytest.mark.asyncio
    async def test_empty_room_is_not_an_error(self, notifier):
        """오프라인 클라이언트에 대한 재전송은 없다"""
        assert notifier.notify("project-404", ev.TASK_CREATED, {"_id": "1"}) == 0

    @pytest.mark.asyncio
    async def test_invalid_room_rejected(self, notifier):
        with pytest.raises(RoomTargetInvalid):
            notifier.notify("lobby", ev.TASK_CREATED, {})

    @pytest.mark.asyncio
    async def test_payload_is_json_encoded(self, realtime_manager, notifier, connect, drain, alice):
        """ObjectId와 datetime은 문자열로 전달된다"""
        session, websocket = await connect(alice)
        realtime_manager.join(session, "project-42")
        oid = ObjectId()

        notifier.task_created("42", {"_id": oid, "createdAt": datetime(2024, 1, 2, 3, 4, 5)})
        await drain(session)

        created = websocket.data_of(ev.TASK_CREATED)[0]
        assert created == {"_id": str(oid), "createdAt": "2024-01-02T03:04:05"}

    @pytest.mark.asyncio
    async def test_task_helpers(self, realtime_manager, notifier, connect, drain, alice):
        session, websocket = await connect(alice)
        realtime_manager.join(session, "project-42")

        notifier.task_deleted("42", "7")
        notifier.comment_added("42", "7", {"text": "LGTM"})
        notifier.checklist_updated("42", "7", [{"text": "테스트", "done": True}])
        await drain(session)

        assert websocket.events() == [ev.TASK_DELETED, ev.TASK_COMMENT_ADDED, ev.TASK_CHECKLIST_UPDATED]
        assert websocket.data_of(ev.TASK_DELETED) == ["7"]
        assert websocket.data_of(ev.TASK_COMMENT_ADDED)[0] == {"taskId": "7", "comment": {"text": "LGTM"}}

    @pytest.mark.asyncio
    async def test_project_helpers(self, realtime_manager, notifier, connect, drain, alice):
        session, websocket = await connect(alice)
        realtime_manager.join(session, "project-42")
        project = {"_id": "42", "name": "인턴 협업"}

        notifier.project_updated(project)
        notifier.member_added(project)
        notifier.member_removed(project, "64a000000000000000000009")
        notifier.project_deleted("42")
        await drain(session)

        assert websocket.events() == [
            ev.PROJECT_UPDATED,
            ev.PROJECT_MEMBER_ADDED,
            ev.PROJECT_MEMBER_REMOVED,
            ev.PROJECT_DELETED,
        ]
        assert websocket.data_of(ev.PROJECT_MEMBER_REMOVED)[0]["removedUserId"] == "64a000000000000000000009"

    @pytest.mark.asyncio
    async def test_accepted_invitation(self, realtime_manager, notifier, connect, drain, alice, bob):
        """수락된 초대는 초대한 사용자와 프로젝트 방 모두에 전파된다"""
        sender, websocket_sender = await connect(alice)
        member, websocket_member = await connect(bob)
        realtime_manager.join(member, "project-42")
        invitation = {"_id": "inv1", "sender": {"_id": alice.user_id, "name": "Alice"}, "status": "accepted"}

        delivered = notifier.invitation_responded(invitation, project={"_id": "42"})
        await drain(sender, member)

        assert delivered == 2
        assert websocket_sender.events() == [ev.INVITATION_RESPONDED]
        assert websocket_member.events() == [ev.PROJECT_MEMBER_ADDED]

    @pytest.mark.asyncio
    async def test_rejected_invitation(self, realtime_manager, notifier, connect, drain, alice, bob):
        sender, websocket_sender = await connect(alice)
        member, websocket_member = await connect(bob)
        realtime_manager.join(member, "project-42")

        notifier.invitation_responded({"sender": alice.user_id, "status": "rejected"}, project={"_id": "42"})
        await drain(sender, member)

        assert websocket_sender.events() == [ev.INVITATION_RESPONDED]
        assert websocket_member.sent == []

    @pytest.mark.asyncio
    async def test_notification_created(self, notifier, connect, drain, alice):
        session, websocket = await connect(alice)

        notifier.notification_created(alice.user_id, {"message": "새 댓글"})
        await drain(session)

        assert websocket.data_of(ev.NOTIFICATION_NEW) == [{"message": "새 댓글"}]
