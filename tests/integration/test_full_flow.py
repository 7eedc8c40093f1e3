from fastapi import status
from fastapi.testclient import TestClient

from tutor_chat.main import create_app
from tutor_chat.realtime.access import ParticipantRoomAccess

ALICE = "alice@x.com"
BOB = "bob@x.com"


def receive_event(websocket, name):
    """name 이벤트가 올 때까지 프레임을 읽음"""
    while True:
        frame = websocket.receive_json()
        if frame["event"] == name:
            return frame["data"]


def join(websocket, room_id):
    websocket.send_json({"event": "join_room", "data": room_id})
    return receive_event(websocket, "message_history")


def send(websocket, room_id, sender, receiver, content):
    websocket.send_json({"event": "send_message", "data": {
        "roomId": room_id,
        "senderId": sender,
        "receiverId": receiver,
        "content": content,
    }})


class TestFullChatFlow:
    """전체 채팅 플로우 통합 테스트"""

    def test_complete_chat_flow(self, test_client: TestClient):
        """
        완전한 채팅 플로우 테스트:
        1. 두 참여자의 채팅방 키 조회
        2. A, B 접속 및 온라인 알림
        3. 채팅방 참여 (빈 히스토리)
        4. 타이핑 알림은 상대방에게만 전달
        5. 메시지 송신 (발신자 포함 전체 전달)
        6. 나중에 참여한 연결은 히스토리로 메시지 수신
        7. 읽음 처리와 대화 목록
        8. 접속 해제 시 오프라인 알림
        """

        # 1. 채팅방 키
        response = test_client.get("/rooms/key", params={"a": BOB, "b": ALICE})
        assert response.status_code == status.HTTP_200_OK
        room_id = response.json()["roomId"]
        assert room_id == f"{ALICE}-{BOB}"

        with test_client.websocket_connect("/ws") as alice:
            with test_client.websocket_connect("/ws") as bob:
                # 2. 온라인 알림
                alice.send_json({"event": "user_online", "data": ALICE})
                assert bob.receive_json() == {"event": "user_online", "data": ALICE}

                bob.send_json({"event": "user_online", "data": BOB})
                assert alice.receive_json() == {"event": "user_online", "data": BOB}

                # 3. 채팅방 참여
                assert join(alice, room_id) == []
                assert join(bob, room_id) == []

                # 4. 타이핑
                typing = {"roomId": room_id, "userId": ALICE}
                alice.send_json({"event": "typing", "data": typing})
                assert bob.receive_json() == {"event": "user_typing", "data": ALICE}
                alice.send_json({"event": "stop_typing", "data": typing})
                assert bob.receive_json() == {"event": "user_stopped_typing", "data": ALICE}

                # 5. 메시지 송신
                send(alice, room_id, ALICE, BOB, "hi bob")
                to_alice = alice.receive_json()
                to_bob = bob.receive_json()
                assert to_alice == to_bob
                assert to_bob["event"] == "new_message"
                message = to_bob["data"]
                assert message["senderId"] == ALICE
                assert message["content"] == "hi bob"

                # 6. 다른 기기에서 늦게 참여
                with test_client.websocket_connect("/ws") as bob_tablet:
                    history = join(bob_tablet, room_id)
                    assert [m["id"] for m in history] == [message["id"]]

                # 7. 읽음 처리와 대화 목록
                response = test_client.post(f"/rooms/{room_id}/read", json={"userId": BOB})
                assert response.json()["updated"] == 1

                rooms = test_client.get("/rooms", params={"user_id": ALICE}).json()
                assert len(rooms) == 1
                assert rooms[0]["lastMessage"]["content"] == "hi bob"

            # 8. 오프라인 알림
            assert receive_event(alice, "user_offline") == BOB

    def test_persistence_failure_is_live_only(self, test_client: TestClient, fake_store):
        """저장 실패한 메시지는 실시간으로는 전달되지만 히스토리에는 없음"""
        room_id = f"{ALICE}-{BOB}"

        with test_client.websocket_connect("/ws") as alice:
            with test_client.websocket_connect("/ws") as bob:
                join(alice, room_id)
                join(bob, room_id)

                fake_store.fail_next = True
                send(alice, room_id, ALICE, BOB, "lost")
                assert receive_event(bob, "new_message")["content"] == "lost"

                send(alice, room_id, ALICE, BOB, "kept")
                assert receive_event(bob, "new_message")["content"] == "kept"

                # 두 번째 메시지의 저장이 끝날 때까지 대기
                bob.send_json({"event": "ping"})
                receive_event(bob, "pong")

            with test_client.websocket_connect("/ws") as late:
                history = join(late, room_id)

        assert [m["content"] for m in history] == ["kept"]

    def test_multi_device_presence(self, test_client: TestClient):
        """같은 사용자의 다른 연결이 남아 있어도 하나가 끊기면 오프라인 알림"""
        with test_client.websocket_connect("/ws") as observer:
            with test_client.websocket_connect("/ws") as phone:
                phone.send_json({"event": "user_online", "data": ALICE})
                assert observer.receive_json() == {"event": "user_online", "data": ALICE}

                with test_client.websocket_connect("/ws") as laptop:
                    laptop.send_json({"event": "user_online", "data": ALICE})
                    assert observer.receive_json() == {"event": "user_online", "data": ALICE}

                assert observer.receive_json() == {"event": "user_offline", "data": ALICE}

                # phone도 "다른 연결"이므로 laptop의 온라인/오프라인 알림을 받음
                assert phone.receive_json() == {"event": "user_online", "data": ALICE}
                assert phone.receive_json() == {"event": "user_offline", "data": ALICE}

                # phone은 여전히 연결되어 있음
                phone.send_json({"event": "ping"})
                assert phone.receive_json()["event"] == "pong"

    def test_participant_policy(self, fake_store):
        """participant 정책에서는 참여자가 아닌 사용자의 join이 거부됨"""
        app = create_app(message_store=fake_store, access_policy=ParticipantRoomAccess())
        room_id = f"{ALICE}-{BOB}"

        with TestClient(app) as client:
            with client.websocket_connect("/ws") as mallory:
                mallory.send_json({"event": "user_online", "data": "mallory@x.com"})
                mallory.send_json({"event": "join_room", "data": room_id})
                mallory.send_json({"event": "ping"})

                # 거부된 join은 history 없이 무시되고 바로 pong이 옴
                assert mallory.receive_json()["event"] == "pong"

                status_data = client.get(f"/rooms/{room_id}/status").json()
                assert status_data["connectionCount"] == 0
