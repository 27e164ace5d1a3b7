"""WebSocket endpoint streaming presentation events to the UI."""

import json
import uuid

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
import structlog

from wild90.ws.manager import manager

logger = structlog.get_logger()

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    user_id: str = Query(..., min_length=1),
) -> None:
    """Per-user event stream.

    Protocol:
        Client -> Server:
            {"action": "ping"}

        Server -> Client:
            {"channel": "scan", "data": {"event": "result_reveal", "data": {...}}}
            {"type": "pong"}
            {"type": "error", "message": "..."}
    """
    conn_id = str(uuid.uuid4())
    await manager.connect(websocket, conn_id, user_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action") if isinstance(msg, dict) else None
            if action == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown action: {action}",
                })

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)
