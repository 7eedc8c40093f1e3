import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tutor_chat.realtime.history import get_history
from tutor_chat.realtime.pipeline import SendOutcome
from tutor_chat.schemas.message import ChatMessage

ROOM = "alice@x.com-bob@x.com"


class TestMessagePipeline:
    """메시지 파이프라인 테스트"""

    @pytest.mark.asyncio
    async def test_send_broadcasts_to_sender_and_receiver(self, chat_server, connect):
        """발신자 본인의 연결도 new_message를 받음"""
        alice = connect()
        bob = connect()
        chat_server.router.join(alice, ROOM)
        chat_server.router.join(bob, ROOM)

        outcome = await chat_server.pipeline.send(ROOM, "alice@x.com", "bob@x.com", "hi")

        assert sorted(outcome.delivered_to) == sorted([alice.id, bob.id])
        for connection in (alice, bob):
            [payload] = connection.websocket.payloads("new_message")
            assert payload["content"] == "hi"
            assert payload["senderId"] == "alice@x.com"
            assert payload["receiverId"] == "bob@x.com"
            assert payload["read"] is False
            assert payload["id"] == outcome.message.id

        assert await outcome.persisted() is True

    @pytest.mark.asyncio
    async def test_send_persists_and_updates_room_preview(self, chat_server, fake_store):
        outcome = await chat_server.pipeline.send(ROOM, "alice@x.com", "bob@x.com", "hi")
        await outcome.persisted()

        assert [m.id for m in fake_store.messages[ROOM]] == [outcome.message.id]
        room = fake_store.rooms[ROOM]
        assert room.last_message.content == "hi"
        assert room.participants == ["alice@x.com", "bob@x.com"]

    @pytest.mark.asyncio
    async def test_send_does_not_wait_for_persistence(self, chat_server, fake_store, connect):
        """저장이 끝나기 전에 send가 반환됨"""
        fake_store.persist_delays = [0.05]
        alice = connect()
        chat_server.router.join(alice, ROOM)

        outcome = await chat_server.pipeline.send(ROOM, "alice@x.com", "bob@x.com", "hi")

        assert alice.websocket.payloads("new_message")
        assert not outcome.persistence.done()
        assert fake_store.messages.get(ROOM) is None

        assert await outcome.persisted() is True
        assert len(fake_store.messages[ROOM]) == 1

    @pytest.mark.asyncio
    async def test_persistence_failure_keeps_broadcast(self, chat_server, fake_store, connect):
        """저장 실패 시에도 브로드캐스트는 유지되고 결과는 False"""
        fake_store.fail_persist = True
        alice = connect()
        bob = connect()
        chat_server.router.join(alice, ROOM)
        chat_server.router.join(bob, ROOM)

        outcome = await chat_server.pipeline.send(ROOM, "alice@x.com", "bob@x.com", "lost")

        assert len(outcome.delivered_to) == 2
        assert await outcome.persisted() is False
        assert await get_history(fake_store, ROOM) == []

    @pytest.mark.asyncio
    async def test_each_message_gets_unique_id(self, chat_server):
        first = await chat_server.pipeline.send(ROOM, "a", "b", "one")
        second = await chat_server.pipeline.send(ROOM, "a", "b", "two")

        assert first.message.id != second.message.id
        await chat_server.pipeline.drain()

    @pytest.mark.asyncio
    async def test_outcome_without_persistence_task(self):
        """저장 태스크가 없는 결과는 저장되지 않은 것으로 봄"""
        message = ChatMessage(sender_id="a", receiver_id="b", content="hi")
        outcome = SendOutcome(message=message, room_id=ROOM)

        assert outcome.persistence is None
        assert outcome.delivered_to == []
        assert await outcome.persisted() is False

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending_writes(self, chat_server, fake_store):
        fake_store.persist_delays = [0.02, 0.01]
        await chat_server.pipeline.send(ROOM, "a", "b", "one")
        await chat_server.pipeline.send(ROOM, "a", "b", "two")

        await chat_server.pipeline.drain()

        assert chat_server.pipeline.pending_count == 0
        assert len(fake_store.messages[ROOM]) == 2


class TestHistory:
    """히스토리 조회 테스트"""

    @pytest.mark.asyncio
    async def test_history_sorted_by_timestamp_not_completion_order(self, chat_server, fake_store):
        """저장 완료 순서가 뒤바뀌어도 생성 시각 순으로 반환"""
        fake_store.persist_delays = [0.05, 0.0]

        first = await chat_server.pipeline.send(ROOM, "a", "b", "first")
        await asyncio.sleep(0.001)
        second = await chat_server.pipeline.send(ROOM, "a", "b", "second")
        await chat_server.pipeline.drain()

        # 두 번째 메시지가 먼저 저장됨
        assert [m.content for m in fake_store.messages[ROOM]] == ["second", "first"]

        history = await get_history(fake_store, ROOM)
        assert [m.id for m in history] == [first.message.id, second.message.id]

    @pytest.mark.asyncio
    async def test_history_normalizes_naive_timestamps(self, fake_store):
        """tz 없는 타임스탬프는 UTC로 간주하고 정렬"""
        base = datetime(2024, 1, 1, 12, 0, 0)
        fake_store.messages[ROOM] = [
            ChatMessage(id="late", sender_id="a", receiver_id="b", content="late",
                        timestamp=base + timedelta(minutes=5)),
            ChatMessage(id="early", sender_id="a", receiver_id="b", content="early",
                        timestamp=(base - timedelta(hours=1)).replace(tzinfo=timezone.utc)),
            ChatMessage(id="middle", sender_id="a", receiver_id="b", content="middle",
                        timestamp=base),
        ]

        history = await get_history(fake_store, ROOM)

        assert [m.id for m in history] == ["early", "middle", "late"]
        assert all(m.timestamp.tzinfo is not None for m in history)

    @pytest.mark.asyncio
    async def test_unknown_room_has_empty_history(self, fake_store):
        assert await get_history(fake_store, "no-such-room") == []
