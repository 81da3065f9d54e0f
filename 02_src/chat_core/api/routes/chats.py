"""Chat API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ...app import IApplication
from ...errors import ChatError
from ...logging_config import get_logger
from ...messaging import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    logical_to_wire,
    message_to_wire,
    unread_to_wire,
)
from ..deps import create_auth_dependency
from ..errors import to_http_exception

logger = get_logger(__name__)


class SendMessageRequest(BaseModel):
    """Request model for sending a message (fields validated by the core)."""

    newMessage: dict[str, Any] | None = None


class UpdateMessageRequest(BaseModel):
    """Request model for editing message content."""

    message: str | None = None


class BulkDeliverTypeRequest(BaseModel):
    """Request model for a bulk delivery-state transition."""

    senderId: str | None = None
    receiverId: list[str] = Field(default_factory=list)
    deliverType: str | None = None
    type: str | None = None


class DeliverTypeUpdateRequest(BaseModel):
    """Request model for a single delivery-state transition."""

    messageId: str | None = None
    deliverType: str | None = None


class DeleteMessageRequest(BaseModel):
    """Request model for a soft delete."""

    senderId: str | None = None
    receiverId: str | list[str] | None = None


class BulkUpdateResponse(BaseModel):
    """Response model for a bulk delivery-state transition."""

    matchedCount: int
    modifiedCount: int


class StatusResponse(BaseModel):
    """Response model for plain confirmations."""

    message: str


def _fail(e: Exception) -> HTTPException:
    if isinstance(e, ChatError):
        return to_http_exception(e)
    logger.exception("Unhandled error in chat route")
    return HTTPException(status_code=500, detail=str(e))


def create_chat_router(app: IApplication) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api/chats", tags=["chats"])
    current_user = create_auth_dependency(app)

    @router.post("/send", status_code=201, dependencies=[Depends(current_user)])
    async def send_message(request: SendMessageRequest, response: Response) -> list[dict]:
        """Persist a direct, group or broadcast message and notify sessions."""
        try:
            result = await app.chat.send_message(request.newMessage)
        except Exception as e:
            raise _fail(e)

        if result.partial:
            response.headers["X-Failed-Receivers"] = ",".join(result.failed_receivers)
        return [message_to_wire(m) for m in result.messages]

    @router.put("/update/{message_id}", dependencies=[Depends(current_user)])
    async def update_message(message_id: str, request: UpdateMessageRequest) -> dict:
        """Replace the text of a message."""
        try:
            message = await app.chat.update_content(message_id, request.message)
            return message_to_wire(message)
        except Exception as e:
            raise _fail(e)

    @router.get("/messages/{user_id1}/{user_id2}", dependencies=[Depends(current_user)])
    async def get_messages(
        user_id1: str,
        user_id2: str,
        type: str | None = Query(None, description="direct, group or broadcast"),
        skip: int = Query(0, ge=0),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ) -> list[dict]:
        """Get one page of conversation history, newest first."""
        try:
            messages = await app.chat.fetch_history(
                user_id1, user_id2, conversation_type=type, skip=skip, limit=limit
            )
            return [logical_to_wire(m) for m in messages]
        except Exception as e:
            raise _fail(e)

    @router.post(
        "/updateDeliverType",
        response_model=BulkUpdateResponse,
        dependencies=[Depends(current_user)],
    )
    async def update_deliver_type(request: BulkDeliverTypeRequest) -> dict:
        """Move every pending message of a conversation to a new delivery state."""
        try:
            result = await app.chat.bulk_update_delivery(
                request.senderId,
                request.receiverId,
                request.deliverType,
                conversation_type=request.type,
            )
            return {"matchedCount": result.matched, "modifiedCount": result.modified}
        except Exception as e:
            raise _fail(e)

    @router.put(
        "/deliverTypeUpdate",
        response_model=StatusResponse,
        dependencies=[Depends(current_user)],
    )
    async def deliver_type_update(request: DeliverTypeUpdateRequest) -> dict:
        """Set the delivery state of one message."""
        try:
            await app.chat.set_delivery_state(request.messageId, request.deliverType)
            return {"message": "deliverType updated successfully."}
        except Exception as e:
            raise _fail(e)

    @router.get("/unreadCount/{user_id}", dependencies=[Depends(current_user)])
    async def unread_count(user_id: str) -> dict:
        """Count pending messages addressed to a user, with the newest of them."""
        try:
            return unread_to_wire(await app.chat.unread_summary(user_id))
        except Exception as e:
            raise _fail(e)

    @router.get(
        "/broadcast/{broadcast_id}/recipients", dependencies=[Depends(current_user)]
    )
    async def broadcast_recipients(broadcast_id: str) -> dict:
        """Get the user ids of a broadcast list."""
        try:
            user_ids = await app.membership.broadcast_recipients(broadcast_id)
            return {"broadcastId": broadcast_id, "userIds": user_ids}
        except Exception as e:
            raise _fail(e)

    @router.delete("/{message_id}", dependencies=[Depends(current_user)])
    async def delete_message(
        message_id: str, request: DeleteMessageRequest | None = None
    ) -> dict:
        """Soft-delete a message and announce it to connected sessions."""
        request = request or DeleteMessageRequest()
        try:
            message = await app.chat.delete_message(
                message_id, request.senderId, request.receiverId
            )
            return message_to_wire(message)
        except Exception as e:
            raise _fail(e)

    return router
