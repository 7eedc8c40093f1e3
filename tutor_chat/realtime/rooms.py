from typing import Any, Dict, List, Optional

from tutor_chat.core.logging import get_logger
from tutor_chat.realtime.connection import Connection, deliver

logger = get_logger(__name__)

ROOM_KEY_SEPARATOR = "-"


def room_key(user_a: str, user_b: str) -> str:
    """
    두 참여자 ID로 채팅방 키를 만듭니다.

    정렬 후 결합하므로 room_key(a, b) == room_key(b, a) 입니다.

    Examples:
        >>> room_key("bob@x.com", "alice@x.com")
        'alice@x.com-bob@x.com'
    """
    return ROOM_KEY_SEPARATOR.join(sorted((user_a, user_b)))


class RoomRouter:
    """
    채팅방별 브로드캐스트 그룹 관리

    room id는 불투명한 문자열이며 형식이나 권한을 검사하지 않습니다.
    권한 검사는 RoomAccessPolicy가 join 전에 수행합니다.
    """

    def __init__(self):
        # {room_id: {connection_id: Connection}}
        self._rooms: Dict[str, Dict[str, Connection]] = {}

    def join(self, connection: Connection, room_id: str) -> bool:
        """연결을 채팅방에 추가합니다. 이미 참여 중이면 False."""
        members = self._rooms.setdefault(room_id, {})
        already_member = connection.id in members
        members[connection.id] = connection
        connection.rooms.add(room_id)
        return not already_member

    def leave(self, connection: Connection, room_id: str) -> bool:
        """연결을 채팅방에서 제거합니다. 참여 중이 아니면 False."""
        connection.rooms.discard(room_id)
        members = self._rooms.get(room_id)
        if not members or connection.id not in members:
            return False

        del members[connection.id]
        # 채팅방에 연결이 없으면 방 자체를 제거
        if not members:
            del self._rooms[room_id]
        return True

    def leave_all(self, connection: Connection) -> List[str]:
        """연결이 참여 중인 모든 채팅방에서 제거합니다."""
        left = [room_id for room_id in list(connection.rooms) if self.leave(connection, room_id)]
        connection.rooms.clear()
        return left

    def members(self, room_id: str) -> List[Connection]:
        return list(self._rooms.get(room_id, {}).values())

    def member_count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, {}))

    def is_member(self, connection: Connection, room_id: str) -> bool:
        return connection.id in self._rooms.get(room_id, {})

    def room_ids(self) -> List[str]:
        return list(self._rooms.keys())

    async def broadcast(
        self,
        room_id: str,
        event: str,
        data: Any,
        exclude: Optional[str] = None
    ) -> List[str]:
        """
        채팅방의 현재 멤버에게 이벤트를 전송합니다.

        호출 시점의 멤버 스냅샷을 대상으로 하며, 전송 중에 참여한 연결은 받지 않습니다.

        Args:
            room_id: 채팅방 ID
            event: 이벤트 이름
            data: 페이로드
            exclude: 제외할 connection id (typing 등 발신자 제외용)

        Returns:
            List[str]: 전송에 성공한 connection id 목록
        """
        targets = [c for c in self.members(room_id) if c.id != exclude]
        return await deliver(targets, event, data)

    def clear(self):
        for members in self._rooms.values():
            for connection in members.values():
                connection.rooms.clear()
        self._rooms.clear()
