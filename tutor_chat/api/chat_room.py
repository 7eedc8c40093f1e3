from typing import List

from fastapi import APIRouter, Depends, Query

from tutor_chat.api.dependencies import get_chat_server, get_message_store
from tutor_chat.core.errors import (
    AuthorizationException,
    ValidationError,
    ValidationException,
    room_not_found_error,
)
from tutor_chat.core.logging import get_logger
from tutor_chat.realtime.history import get_history
from tutor_chat.realtime.rooms import room_key
from tutor_chat.realtime.server import ChatServer
from tutor_chat.schemas.message import (
    ChatRoomPreview,
    MarkReadRequest,
    MarkReadResponse,
    MessageHistory,
    RoomKeyResponse,
    RoomStatus,
)
from tutor_chat.services.message_store import MessageStore

logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["Chat Rooms"])


@router.get("/key", response_model=RoomKeyResponse)
async def get_room_key(
    a: str = Query(..., min_length=1, description="참여자 ID"),
    b: str = Query(..., min_length=1, description="상대방 ID"),
) -> RoomKeyResponse:
    """두 참여자의 채팅방 키 (순서와 무관)"""
    return RoomKeyResponse(room_id=room_key(a, b), participants=sorted((a, b)))


@router.get("", response_model=List[ChatRoomPreview])
async def list_chat_rooms(
    user_id: str = Query(..., min_length=1, description="참여자 ID"),
    store: MessageStore = Depends(get_message_store),
) -> List[ChatRoomPreview]:
    """
    대화 목록 조회

    최근 메시지 순으로 정렬되며, last_message는 미리보기용 캐시입니다.
    """
    return await store.list_rooms(user_id)


@router.get("/{room_id}", response_model=ChatRoomPreview)
async def get_chat_room(
    room_id: str,
    store: MessageStore = Depends(get_message_store),
) -> ChatRoomPreview:
    """채팅방 미리보기 조회"""
    room = await store.get_room(room_id)
    if room is None:
        raise room_not_found_error(room_id)
    return room


@router.get("/{room_id}/messages", response_model=MessageHistory)
async def get_room_messages(
    room_id: str,
    store: MessageStore = Depends(get_message_store),
) -> MessageHistory:
    """
    채팅방 전체 메시지 조회 (시간 오름차순)

    없는 채팅방은 빈 목록을 반환합니다.
    """
    messages = await get_history(store, room_id)
    return MessageHistory(room_id=room_id, messages=messages, total=len(messages))


@router.post("/{room_id}/read", response_model=MarkReadResponse)
async def mark_room_as_read(
    room_id: str,
    request: MarkReadRequest,
    server: ChatServer = Depends(get_chat_server),
) -> MarkReadResponse:
    """
    수신자의 안 읽은 메시지를 모두 읽음 처리

    - **userId**: 읽음 처리할 수신자 ID (채팅방 접근 정책을 통과해야 함)
    """
    if not request.user_id.strip():
        raise ValidationException(
            "Invalid read request",
            validation_errors=[ValidationError(field="userId", message="userId must not be empty")]
        )

    if not await server.access_policy.can_join(request.user_id, room_id):
        raise AuthorizationException(
            f"User {request.user_id} cannot access room {room_id}",
            details={"room_id": room_id}
        )

    updated = await server.store.mark_read(room_id, request.user_id)
    logger.info(f"Marked {updated} messages as read in room {room_id} for {request.user_id}")
    return MarkReadResponse(updated=updated)


@router.get("/{room_id}/status", response_model=RoomStatus)
async def get_room_status(
    room_id: str,
    server: ChatServer = Depends(get_chat_server),
) -> RoomStatus:
    """채팅방의 현재 연결 수와 온라인 사용자"""
    return server.room_status(room_id)
