"""
채팅방 접근 정책

join 전에 호출되는 권한 검사 협력자입니다.
기본 정책(open)은 클라이언트가 보낸 room id를 그대로 신뢰합니다.
"""

from typing import Optional, Protocol

from tutor_chat.realtime.rooms import ROOM_KEY_SEPARATOR


class RoomAccessPolicy(Protocol):
    async def can_join(self, user_id: Optional[str], room_id: str) -> bool: ...


class OpenRoomAccess:
    """모든 join 허용"""

    async def can_join(self, user_id: Optional[str], room_id: str) -> bool:
        return True


class ParticipantRoomAccess:
    """room key의 참여자 중 하나로 user_online을 보낸 연결만 허용"""

    async def can_join(self, user_id: Optional[str], room_id: str) -> bool:
        if not user_id:
            return False
        # 사용자 ID에 구분자가 포함될 수 있으므로 split 대신 접두/접미 비교
        return (
            room_id.startswith(user_id + ROOM_KEY_SEPARATOR)
            or room_id.endswith(ROOM_KEY_SEPARATOR + user_id)
        )


def get_access_policy(name: str) -> RoomAccessPolicy:
    """설정 값으로 접근 정책 선택"""
    policies = {
        "open": OpenRoomAccess,
        "participant": ParticipantRoomAccess,
    }
    try:
        return policies[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown room access policy: {name}")
