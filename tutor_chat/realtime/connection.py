from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from fastapi import WebSocket

from tutor_chat.core.logging import get_logger

logger = get_logger(__name__)


class Connection:
    """하나의 WebSocket 세션 (프로세스 로컬, 저장되지 않음)"""

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.id = connection_id or uuid4().hex
        self.websocket = websocket
        # 참여 중인 채팅방 (현재 프로토콜에서는 보통 1개)
        self.rooms: Set[str] = set()

    async def emit(self, event: str, data: Any = None):
        """이 연결에만 이벤트를 전송합니다."""
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self):
        return f"<Connection(id={self.id}, rooms={sorted(self.rooms)})>"


async def deliver(connections: Iterable[Connection], event: str, data: Any) -> List[str]:
    """
    여러 연결에 이벤트를 전송합니다.

    한 연결의 전송 실패는 로그만 남기고 나머지 전송을 계속합니다.
    끊어진 연결은 수신 루프에서 disconnect 처리됩니다.

    Returns:
        List[str]: 전송에 성공한 connection id 목록
    """
    delivered = []
    for connection in list(connections):
        try:
            await connection.emit(event, data)
            delivered.append(connection.id)
        except Exception as e:
            logger.error(f"Failed to send '{event}' to connection {connection.id}: {e}")
    return delivered


class ConnectionRegistry:
    """서버 프로세스가 소유하는 활성 연결 테이블"""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def register(self, connection: Connection):
        self._connections[connection.id] = connection

    def unregister(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def all(self) -> List[Connection]:
        return list(self._connections.values())

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> List[str]:
        """모든 연결(exclude 제외)에 브로드캐스트합니다."""
        targets = [c for c in self._connections.values() if c.id != exclude]
        return await deliver(targets, event, data)

    def clear(self):
        self._connections.clear()
