"""
온라인 상태 추적

connection id → user id 매핑을 메모리에 유지하고 온라인/오프라인 전환을 브로드캐스트합니다.
프로세스가 재시작되면 상태는 모두 사라집니다.

한 사용자가 여러 기기로 접속해도 중복 제거를 하지 않습니다.
연결 하나가 끊어지면 다른 연결이 남아 있어도 user_offline이 전송됩니다.
"""

from typing import Dict, List, Optional

from tutor_chat.core.logging import get_logger, log_websocket_event
from tutor_chat.realtime.connection import ConnectionRegistry

logger = get_logger(__name__)

USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"


class PresenceTracker:
    """온라인 상태 관리"""

    def __init__(self, registry: ConnectionRegistry):
        self._registry = registry
        # {connection_id: user_id}
        self._entries: Dict[str, str] = {}

    async def mark_online(self, connection_id: str, user_id: str) -> List[str]:
        """
        연결을 사용자에 매핑하고 다른 모든 연결에 user_online을 전송합니다.

        같은 연결로 다시 호출하면 매핑을 덮어씁니다.

        Returns:
            List[str]: user_online을 받은 connection id 목록
        """
        self._entries[connection_id] = user_id
        log_websocket_event(logger, USER_ONLINE, connection_id, user_id=user_id)
        return await self._registry.broadcast(USER_ONLINE, user_id, exclude=connection_id)

    async def mark_offline(self, connection_id: str) -> Optional[str]:
        """
        연결의 매핑을 제거하고 남은 연결에 user_offline을 전송합니다.

        온라인으로 표시된 적 없는 연결이면 아무 것도 하지 않습니다.

        Returns:
            Optional[str]: 오프라인 처리된 user id (없으면 None)
        """
        user_id = self._entries.pop(connection_id, None)
        if user_id is None:
            return None

        log_websocket_event(logger, USER_OFFLINE, connection_id, user_id=user_id)
        await self._registry.broadcast(USER_OFFLINE, user_id, exclude=connection_id)
        return user_id

    def user_for(self, connection_id: str) -> Optional[str]:
        return self._entries.get(connection_id)

    def connections_for(self, user_id: str) -> List[str]:
        return [cid for cid, uid in self._entries.items() if uid == user_id]

    def online_users(self) -> List[str]:
        """현재 온라인인 사용자 목록 (중복 제거)"""
        return sorted(set(self._entries.values()))

    def is_online(self, user_id: str) -> bool:
        return user_id in self._entries.values()

    def clear(self):
        self._entries.clear()
