from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from tutor_chat.core.logging import get_logger, set_connection_context
from tutor_chat.realtime.server import ChatServer

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    실시간 채팅 WebSocket 엔드포인트

    프레임 형식: {"event": "<이벤트 이름>", "data": <페이로드>}
    인증은 앞단에서 끝난 것으로 간주하며, 사용자 ID는 user_online 이벤트로 전달받습니다.
    """
    server: ChatServer = websocket.app.state.chat_server

    await websocket.accept()

    # accept 이후에 등록 (핸드셰이크 전에는 send할 수 없음)
    connection = server.connect(websocket)
    set_connection_context(connection.id)

    try:
        # 연결별 단일 수신 루프: 한 연결의 이벤트는 도착 순서대로 처리됨
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류는 해당 프레임만 버림
                logger.warning(f"Invalid JSON from connection {connection.id}: {e}")
                continue

            await server.handle_event(connection, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: connection {connection.id}")

    except Exception as e:
        logger.error(f"Unexpected error in WebSocket connection {connection.id}: {e}", exc_info=True)

    finally:
        await server.disconnect(connection)
        set_connection_context(None)
