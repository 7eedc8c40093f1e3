"""
메시지 파이프라인

send_message 처리 순서:
1. ChatMessage 생성 (새 UUID, 현재 UTC 시각, read=False)
2. 채팅방 전체(발신자 포함)에 new_message 브로드캐스트
3. 백그라운드 태스크로 저장 (브로드캐스트를 막지 않음)

저장 실패는 로그만 남기며 재시도나 브로드캐스트 취소는 하지 않습니다.
실시간 전달은 되었지만 이후 join 시 히스토리에는 없을 수 있습니다.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Set

from tutor_chat.core.logging import get_logger
from tutor_chat.realtime.rooms import RoomRouter
from tutor_chat.schemas.message import ChatMessage
from tutor_chat.services.message_store import MessageStore

logger = get_logger(__name__)

NEW_MESSAGE = "new_message"


@dataclass
class SendOutcome:
    """브로드캐스트 결과와 저장 결과를 따로 확인할 수 있는 send 결과"""
    message: ChatMessage
    room_id: str
    delivered_to: List[str] = field(default_factory=list)
    persistence: Optional["asyncio.Task[bool]"] = None

    async def persisted(self) -> bool:
        """저장 완료까지 기다린 뒤 성공 여부 반환"""
        if self.persistence is None:
            return False
        return await self.persistence


class MessagePipeline:
    """메시지 생성 → 브로드캐스트 → 비동기 저장"""

    def __init__(self, router: RoomRouter, store: MessageStore):
        self._router = router
        self._store = store
        # GC 방지를 위해 진행 중인 저장 태스크 참조 유지
        self._pending: Set[asyncio.Task] = set()

    async def send(
        self,
        room_id: str,
        sender_id: str,
        receiver_id: str,
        content: str
    ) -> SendOutcome:
        """
        메시지를 채팅방에 전송합니다.

        반환 시점에 호출 당시의 모든 멤버에게 전송이 끝나 있고, 저장은 기다리지 않습니다.

        Args:
            room_id: 채팅방 ID
            sender_id: 발송자 ID
            receiver_id: 수신자 ID
            content: 메시지 내용

        Returns:
            SendOutcome: delivered_to(실시간 전달 결과)와 persistence(저장 태스크)
        """
        message = ChatMessage(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
        )

        delivered = await self._router.broadcast(room_id, NEW_MESSAGE, message.to_wire())

        task = asyncio.create_task(self._persist(room_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        logger.info(
            f"Message {message.id} sent from {sender_id} to room {room_id}",
            extra={
                "event_type": "websocket",
                "event": NEW_MESSAGE,
                "room_id": room_id,
                "message_id": message.id,
                "delivered_count": len(delivered),
            },
        )

        return SendOutcome(
            message=message,
            room_id=room_id,
            delivered_to=delivered,
            persistence=task,
        )

    async def _persist(self, room_id: str, message: ChatMessage) -> bool:
        try:
            await self._store.persist_message(room_id, message)
            return True
        except Exception as e:
            logger.error(
                f"Error saving message {message.id} to room {room_id}: {e}",
                extra={"room_id": room_id, "message_id": message.id},
                exc_info=True,
            )
            return False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self):
        """진행 중인 저장 태스크를 모두 기다립니다 (종료 시 사용)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
