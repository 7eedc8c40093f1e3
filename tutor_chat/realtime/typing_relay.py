from typing import List

from tutor_chat.realtime.connection import Connection
from tutor_chat.realtime.rooms import RoomRouter

USER_TYPING = "user_typing"
USER_STOPPED_TYPING = "user_stopped_typing"


class TypingRelay:
    """
    타이핑 상태 중계

    상태를 저장하지 않으며 서버 측 타임아웃도 없습니다.
    stop 신호는 전적으로 클라이언트 책임이라, 비정상 종료 시 수신 측 표시가 남을 수 있습니다.
    """

    def __init__(self, router: RoomRouter):
        self._router = router

    async def typing_start(self, connection: Connection, room_id: str, user_id: str) -> List[str]:
        """발신 연결을 제외한 채팅방 멤버에게 user_typing 전송"""
        return await self._router.broadcast(room_id, USER_TYPING, user_id, exclude=connection.id)

    async def typing_stop(self, connection: Connection, room_id: str, user_id: str) -> List[str]:
        """발신 연결을 제외한 채팅방 멤버에게 user_stopped_typing 전송"""
        return await self._router.broadcast(room_id, USER_STOPPED_TYPING, user_id, exclude=connection.id)
