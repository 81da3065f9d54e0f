"""Real-time relay socket route."""

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ...app import IApplication
from ...errors import AuthError
from ...logging_config import get_logger, log_context
from ..deps import claims_user

logger = get_logger(__name__)


def create_relay_router(app: IApplication) -> APIRouter:
    """Create relay router."""
    router = APIRouter(tags=["relay"])

    @router.websocket("/ws")
    async def relay_socket(websocket: WebSocket, token: str | None = Query(None)) -> None:
        """Bind a socket to the token's user and relay events both ways."""
        try:
            claims = app.tokens.verify(token)
        except AuthError as e:
            logger.info("Socket rejected: %s", e.message)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await app.identity.observe(claims_user(claims))
        await websocket.accept()
        session = await app.relay.connect(claims.user_id, websocket)
        try:
            while True:
                frame = await websocket.receive_json()
                await app.relay.handle_client_event(session, frame)
        except WebSocketDisconnect:
            pass
        except ValueError as e:
            # receive_json on a non-JSON frame
            logger.warning(
                "Closing socket after bad frame: %s",
                e,
                extra=log_context(session_id=session.session_id),
            )
            await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
        finally:
            await app.relay.disconnect(session.session_id)

    return router
