import asyncio
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from tutor_chat.main import create_app
from tutor_chat.realtime.connection import Connection
from tutor_chat.realtime.server import ChatServer
from tutor_chat.schemas.message import ChatMessage, ChatRoomPreview
from tutor_chat.utils.time_utils import utc_now


# =============================================================================
# 테스트 더블
# =============================================================================

class FakeWebSocket:
    """send_json 호출을 기록하는 가짜 WebSocket"""

    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Dict[str, Any]):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        if name is None:
            return list(self.sent)
        return [frame for frame in self.sent if frame["event"] == name]

    def payloads(self, name: str) -> List[Any]:
        return [frame["data"] for frame in self.events(name)]


class FakeMessageStore:
    """
    메모리 기반 MessageStore

    - fail_persist: True면 persist_message가 예외를 던짐 (한 번만 실패시키려면 fail_next 사용)
    - persist_delays: 호출 순서별 지연 (저장 완료 순서를 뒤섞을 때 사용)
    """

    def __init__(self):
        self.messages: Dict[str, List[ChatMessage]] = {}
        self.rooms: Dict[str, ChatRoomPreview] = {}
        self.fail_persist = False
        self.fail_next = False
        self.fail_fetch = False
        self.persist_delays: List[float] = []
        self.persist_calls = 0

    async def persist_message(self, room_id: str, message: ChatMessage) -> None:
        call_index = self.persist_calls
        self.persist_calls += 1

        if call_index < len(self.persist_delays):
            await asyncio.sleep(self.persist_delays[call_index])

        if self.fail_persist or self.fail_next:
            self.fail_next = False
            raise ConnectionError("store unavailable")

        self.messages.setdefault(room_id, []).append(message.model_copy())

        existing = self.rooms.get(room_id)
        self.rooms[room_id] = ChatRoomPreview(
            room_id=room_id,
            participants=existing.participants if existing else sorted({message.sender_id, message.receiver_id}),
            last_message=message.model_copy(),
            updated_at=utc_now(),
        )

    async def fetch_messages(self, room_id: str) -> List[ChatMessage]:
        if self.fail_fetch:
            raise ConnectionError("store unavailable")
        return [message.model_copy() for message in self.messages.get(room_id, [])]

    async def mark_read(self, room_id: str, user_id: str) -> int:
        updated = 0
        for message in self.messages.get(room_id, []):
            if message.receiver_id == user_id and not message.read:
                message.read = True
                updated += 1
        return updated

    async def get_room(self, room_id: str) -> Optional[ChatRoomPreview]:
        return self.rooms.get(room_id)

    async def list_rooms(self, user_id: str) -> List[ChatRoomPreview]:
        rooms = [room for room in self.rooms.values() if user_id in room.participants]
        return sorted(rooms, key=lambda room: room.updated_at, reverse=True)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_store() -> FakeMessageStore:
    """테스트용 메모리 저장소"""
    return FakeMessageStore()


@pytest.fixture
def chat_server(fake_store) -> ChatServer:
    """격리된 채팅 서버 인스턴스"""
    return ChatServer(fake_store)


@pytest.fixture
def connect(chat_server):
    """가짜 WebSocket으로 연결을 만들어 서버에 등록하는 팩토리"""
    def _connect(fail: bool = False) -> Connection:
        return chat_server.connect(FakeWebSocket(fail=fail))
    return _connect


@pytest.fixture
def app(fake_store):
    """MongoDB 없이 메모리 저장소를 쓰는 앱"""
    return create_app(message_store=fake_store)


@pytest.fixture
def test_client(app):
    """lifespan까지 실행되는 동기 테스트 클라이언트 (WebSocket 테스트용)"""
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def client(app, chat_server):
    """테스트용 비동기 HTTP 클라이언트 (lifespan 없이 chat_server를 직접 주입)"""
    app.state.chat_server = chat_server
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
