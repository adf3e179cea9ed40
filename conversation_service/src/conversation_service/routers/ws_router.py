from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..logging_config import logger
from ..security import parse_bearer
from ..services.broker import StompBroker

ws_router = APIRouter(tags=["WebSocket"])


@ws_router.websocket("/ws")
async def broker_websocket(websocket: WebSocket):
    """
    STOMP-over-WebSocket endpoint.

    The token comes from `Authorization: Bearer` or the `token` query
    parameter; the broker refuses the handshake without a valid one.
    """
    broker: StompBroker = websocket.app.state.broker
    token = parse_bearer(websocket.headers, websocket.query_params)

    connection_id = await broker.accept_connection(websocket, token)
    if connection_id is None:
        return

    try:
        while broker.get_connection(connection_id) is not None:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is not None:
                await broker.on_frame(connection_id, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket connection {connection_id} failed: {e}", exc_info=True)
    finally:
        await broker.disconnect(connection_id)
        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            await websocket.close()
