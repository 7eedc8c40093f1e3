"""
실시간 채팅 서버

프로세스 수명 동안 연결 테이블, 온라인 상태, 채팅방 멤버십을 소유하고
클라이언트 이벤트를 각 컴포넌트로 라우팅합니다.

각 핸들러는 메모리 상태를 변경하는 동안 await 하지 않으므로 이벤트 단위로 원자적입니다.
실시간 채널의 오류는 클라이언트에 전달하지 않고 서버 로그로만 남깁니다.
"""

from typing import Any, Dict, List, Optional

from fastapi import WebSocket
from pydantic import ValidationError as PydanticValidationError

from tutor_chat.core.errors import InvalidEventPayload
from tutor_chat.core.logging import get_logger, log_websocket_event
from tutor_chat.realtime.access import OpenRoomAccess, RoomAccessPolicy
from tutor_chat.realtime.connection import Connection, ConnectionRegistry
from tutor_chat.realtime.history import get_history
from tutor_chat.realtime.pipeline import MessagePipeline, SendOutcome
from tutor_chat.realtime.presence import USER_ONLINE, PresenceTracker
from tutor_chat.realtime.rooms import RoomRouter
from tutor_chat.realtime.typing_relay import TypingRelay
from tutor_chat.schemas.message import ClientEvent, RoomStatus, SendMessagePayload, TypingPayload
from tutor_chat.services.message_store import MessageStore
from tutor_chat.utils.time_utils import utc_now

logger = get_logger(__name__)

# 클라이언트 → 서버 이벤트
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
SEND_MESSAGE = "send_message"
TYPING = "typing"
STOP_TYPING = "stop_typing"
PING = "ping"

# 서버 → 클라이언트 이벤트
MESSAGE_HISTORY = "message_history"
PONG = "pong"


def _require_string(event: str, data: Any) -> str:
    if not isinstance(data, str):
        raise InvalidEventPayload(event, "expected a string")
    return data


class ChatServer:
    """실시간 채팅 서버 (앱 시작 시 생성, 종료 시 close)"""

    def __init__(self, store: MessageStore, access_policy: Optional[RoomAccessPolicy] = None):
        self.store = store
        self.access_policy = access_policy or OpenRoomAccess()
        self.registry = ConnectionRegistry()
        self.presence = PresenceTracker(self.registry)
        self.router = RoomRouter()
        self.pipeline = MessagePipeline(self.router, store)
        self.typing = TypingRelay(self.router)

    # =========================================================================
    # 연결 수명 주기
    # =========================================================================

    def connect(self, websocket: WebSocket) -> Connection:
        """새 연결을 등록합니다."""
        connection = Connection(websocket)
        self.registry.register(connection)
        log_websocket_event(logger, "connect", connection.id)
        return connection

    async def disconnect(self, connection: Connection):
        """채팅방에서 나가고 온라인 상태를 해제한 뒤 연결을 제거합니다."""
        if connection.id not in self.registry:
            return

        left_rooms = self.router.leave_all(connection)
        self.registry.unregister(connection.id)
        user_id = await self.presence.mark_offline(connection.id)

        log_websocket_event(
            logger, "disconnect", connection.id,
            user_id=user_id, left_rooms=left_rooms
        )

    async def close(self):
        """대기 중인 저장을 마치고 모든 메모리 상태를 정리합니다."""
        await self.pipeline.drain()
        self.presence.clear()
        self.router.clear()
        self.registry.clear()
        logger.info("Chat server closed")

    # =========================================================================
    # 이벤트 라우팅
    # =========================================================================

    async def handle_event(self, connection: Connection, frame: Dict[str, Any]):
        """
        WebSocket으로 받은 프레임을 처리합니다.

        Args:
            connection: 이벤트를 보낸 연결
            frame: {"event": str, "data": Any}
        """
        try:
            client_event = ClientEvent.model_validate(frame)
        except PydanticValidationError as e:
            logger.warning(f"Malformed frame from connection {connection.id}: {e.errors()}")
            return

        event = client_event.event
        data = client_event.data

        try:
            if event == USER_ONLINE:
                await self.user_online(connection, _require_string(event, data))
            elif event == JOIN_ROOM:
                await self.join_room(connection, _require_string(event, data))
            elif event == LEAVE_ROOM:
                self.leave_room(connection, _require_string(event, data))
            elif event == SEND_MESSAGE:
                payload = SendMessagePayload.model_validate(data)
                await self.send_message(
                    payload.room_id, payload.sender_id, payload.receiver_id, payload.content
                )
            elif event == TYPING:
                payload = TypingPayload.model_validate(data)
                await self.typing.typing_start(connection, payload.room_id, payload.user_id)
            elif event == STOP_TYPING:
                payload = TypingPayload.model_validate(data)
                await self.typing.typing_stop(connection, payload.room_id, payload.user_id)
            elif event == PING:
                await connection.emit(PONG, {"timestamp": utc_now().isoformat()})
            else:
                logger.warning(f"Unknown event type: {event} from connection {connection.id}")

        except (InvalidEventPayload, PydanticValidationError) as e:
            logger.warning(f"Invalid '{event}' payload from connection {connection.id}: {e}")
        except Exception as e:
            logger.error(
                f"Error handling '{event}' from connection {connection.id}: {e}",
                exc_info=True
            )

    # =========================================================================
    # 이벤트 핸들러
    # =========================================================================

    async def user_online(self, connection: Connection, user_id: str) -> List[str]:
        return await self.presence.mark_online(connection.id, user_id)

    async def join_room(self, connection: Connection, room_id: str) -> bool:
        """
        채팅방에 참여하고 히스토리를 이 연결에만 한 번 전송합니다.

        히스토리 조회에 실패하면 로그만 남기고 message_history를 보내지 않습니다 (join은 유지).

        Returns:
            bool: 접근 정책에 의해 거부되면 False
        """
        user_id = self.presence.user_for(connection.id)
        if not await self.access_policy.can_join(user_id, room_id):
            logger.warning(
                f"Connection {connection.id} (user {user_id}) denied access to room {room_id}",
                extra={"event_type": "room_access_denied", "room_id": room_id}
            )
            return False

        self.router.join(connection, room_id)
        log_websocket_event(logger, JOIN_ROOM, connection.id, user_id=user_id, room_id=room_id)

        try:
            history = await get_history(self.store, room_id)
        except Exception as e:
            logger.error(f"Error fetching messages for room {room_id}: {e}", exc_info=True)
            return True

        await connection.emit(MESSAGE_HISTORY, [message.to_wire() for message in history])
        return True

    def leave_room(self, connection: Connection, room_id: str) -> bool:
        left = self.router.leave(connection, room_id)
        if left:
            log_websocket_event(
                logger, LEAVE_ROOM, connection.id,
                user_id=self.presence.user_for(connection.id), room_id=room_id
            )
        return left

    async def send_message(
        self,
        room_id: str,
        sender_id: str,
        receiver_id: str,
        content: str
    ) -> SendOutcome:
        return await self.pipeline.send(room_id, sender_id, receiver_id, content)

    # =========================================================================
    # 조회
    # =========================================================================

    def room_status(self, room_id: str) -> RoomStatus:
        """채팅방의 현재 연결 수와 온라인 사용자"""
        members = self.router.members(room_id)
        online_users = sorted({
            user_id for user_id in (self.presence.user_for(c.id) for c in members)
            if user_id
        })
        return RoomStatus(
            room_id=room_id,
            connection_count=len(members),
            online_users=online_users,
            is_active=len(members) > 0,
        )
