from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.broadcast import manager

router = APIRouter(tags=["push"])


@router.websocket("/ws")
async def order_events(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        # Broadcast-only: anything the client sends is ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
