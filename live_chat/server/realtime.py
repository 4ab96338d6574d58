"""Push channel: one WebSocket per user, registered in the presence registry."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .auth import resolve_token
from .logging_config import configure_logging
from .presence import Connection, PresenceRegistry

router = APIRouter(tags=["realtime"])
logger = configure_logging()

UNAUTHORIZED_CLOSE_CODE = 4401


@router.websocket("/ws")
async def push_channel(websocket: WebSocket):
    """
    Client connects with ?token=<bearer token>.
    Receives:
      - online_users   [user ids]
      - new_message    message view
      - reaction_update {message_id, reactions}
    Sends:
      - {"event": "ping"}, answered with {"event": "pong"}
    """
    user_id = resolve_token(websocket.query_params.get("token"))
    if user_id is None:
        logger.warning("UNAUTHORIZED_ACCESS reason=invalid_ws_token")
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    presence: PresenceRegistry = websocket.app.state.presence
    await websocket.accept()
    connection = Connection(user_id, websocket)
    await presence.register(user_id, connection)
    try:
        while True:
            frame = await websocket.receive_json()
            if isinstance(frame, dict) and frame.get("event") == "ping":
                await connection.push("pong", None)
    except WebSocketDisconnect:
        pass
    except (ValueError, KeyError):
        # Malformed JSON or a binary frame.
        logger.info("WS_BAD_FRAME user_id=%s", user_id)
        connection.mark_disconnected()
        await websocket.close(code=1003)
    finally:
        connection.mark_disconnected()
        await presence.unregister(user_id, connection)
