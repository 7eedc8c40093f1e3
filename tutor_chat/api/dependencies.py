"""
API Dependencies

앱 수명 주기 동안 생성된 실시간 서버와 저장소를 요청 핸들러에 주입합니다.
"""

from fastapi import Request

from tutor_chat.realtime.server import ChatServer
from tutor_chat.services.message_store import MessageStore


def get_chat_server(request: Request) -> ChatServer:
    return request.app.state.chat_server


def get_message_store(request: Request) -> MessageStore:
    return request.app.state.chat_server.store
