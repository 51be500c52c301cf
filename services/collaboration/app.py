"""WebSocket endpoint of the collaboration gateway."""

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from services.auth import InvalidTokenError, resolve_user_id
from services.collaboration.hub import CollaborationHub
from shared.enums import ServerEvent
from shared.models import event_message
from shared.utils import config, setup_logging

logger = setup_logging("collaboration-service")

router = APIRouter()


def get_hub(request: Request) -> CollaborationHub:
    """Dependency returning the hub attached to the running application."""
    return request.app.state.collab_hub


def _authenticate(hub: CollaborationHub, token: str) -> str:
    with hub.session_factory() as db:
        return resolve_user_id(db, token)


@router.websocket("/ws/collab")
async def collaboration_endpoint(websocket: WebSocket):
    """
    Collaboration socket.

    Query parameters: ``token`` (bearer JWT) and an optional ``client_id``
    requested as session id. Messages are ``{"event": ..., "data": {...}}``.
    """
    hub: CollaborationHub = websocket.app.state.collab_hub
    token = websocket.query_params.get("token")
    user_id: str | None = None

    if token:
        try:
            user_id = await run_in_threadpool(_authenticate, hub, token)
        except InvalidTokenError as e:
            logger.warning(f"Rejected collaboration socket: {e}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    elif config.get("collab_require_auth", True):
        logger.warning("Rejected collaboration socket without token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session_id = await hub.connect(websocket, websocket.query_params.get("client_id"), user_id)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await hub.router.send_to(
                    session_id, event_message(ServerEvent.ERROR, {"message": "Invalid JSON"})
                )
                continue
            await hub.handle(session_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(session_id)
