"""
WebSocket-Kanal für Live-Updates (mood-updated).
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter(tags=["realtime"])

PING = "ping"


@router.websocket("/ws")
async def mood_updates(websocket: WebSocket):
    hub = websocket.app.state.hub
    connection_id = await hub.connect(websocket)
    try:
        # Clients senden nur Heartbeats; alles andere wird ignoriert
        while True:
            message = await websocket.receive_text()
            if message == PING:
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(connection_id)
