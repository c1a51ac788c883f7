import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from traffic_chat.services.realtime import get_hub

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/realtime/{conversation_id}")
async def realtime_websocket(websocket: WebSocket, conversation_id: str):
    """Push every message inserted into one conversation to the connected client."""
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict] = asyncio.Queue()

    # Publishers may run outside the event loop thread
    unsubscribe = get_hub().subscribe(
        conversation_id, lambda payload: loop.call_soon_threadsafe(queue.put_nowait, payload)
    )
    await websocket.send_json({"type": "subscribed", "conversation_id": conversation_id})

    async def wait_for_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            return

    disconnected = asyncio.create_task(wait_for_disconnect())
    try:
        while True:
            next_event = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {next_event, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                next_event.cancel()
                break
            await websocket.send_json(next_event.result())
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        disconnected.cancel()
        logger.debug(f"Realtime subscriber for {conversation_id} disconnected")
