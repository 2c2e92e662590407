"""WebSocket API endpoints for real-time updates."""

import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from task_board.factory import Services
from task_board.websocket.broadcaster import Subscription, encode_message

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time task updates.

    Sends an ``init`` snapshot (project list and the default project's tasks)
    and then every event published while the client stays connected.

    Args:
        websocket: WebSocket connection
    """
    services: Services = websocket.app.state.services

    await websocket.accept()
    # Subscribe before the snapshot so nothing published in between is lost
    subscription = services.broadcaster.subscribe()
    sender: asyncio.Task[None] | None = None
    try:
        tasks = await asyncio.to_thread(services.store.list_tasks, services.config.default_project)
        snapshot = {
            "projects": services.store.list_projects(),
            "tasks": [t.to_dict() for t in tasks],
        }
        await websocket.send_text(encode_message("init", snapshot))
        sender = asyncio.create_task(_pump(websocket, subscription))

        while True:
            # Keep connection alive, handle client messages (ping/pong)
            data = await websocket.receive_text()
            logger.debug(f"[WebSocket] Received from client: {data}")
            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected normally")
    except Exception as e:
        logger.error(f"[WebSocket] Error: {e}", exc_info=True)
    finally:
        subscription.close()
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward queued broadcasts to the socket until a send fails."""
    while not subscription.closed:
        message = await subscription.get()
        try:
            await websocket.send_text(message)
        except Exception as e:
            logger.warning(f"[WebSocket] Failed to send to client: {e}")
            subscription.close()
            return
