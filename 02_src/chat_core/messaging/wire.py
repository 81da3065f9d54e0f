"""Wire shapes for rows and logical messages (camelCase field names)."""

from typing import Any

from ..models import (
    DOCUMENT_KEYS,
    LogicalMessage,
    Message,
    MessageBody,
    Participant,
    UnreadSummary,
)


def participant_to_wire(participant: Participant) -> dict[str, str]:
    return {"userId": participant.user_id, "name": participant.name}


def _body_fields(body: MessageBody) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "message": body.content,
        "messageType": body.message_type,
        "imagename": body.image_name,
        "docicon": body.doc_icon,
        "files": [{"filename": f.filename, "size": f.size} for f in body.files],
    }
    for index, key in enumerate(DOCUMENT_KEYS):
        fields[key] = body.documents[index] if index < len(body.documents) else None
    return fields


def message_to_wire(message: Message) -> dict[str, Any]:
    """One persisted row."""
    return {
        "_id": message.id,
        "batchId": message.batch_id,
        "type": message.conversation_type.value,
        "refId": message.reference_id,
        "sender": participant_to_wire(message.sender),
        "receiver": [participant_to_wire(r) for r in message.receivers],
        **_body_fields(message.body),
        "deliverType": message.delivery_state.value,
        "status": message.lifecycle_status.value,
        "isForwarded": message.is_forwarded,
        "replyTo": message.reply_to,
        "createdAt": message.created_at.isoformat(),
        "updatedAt": message.updated_at.isoformat(),
    }


def logical_to_wire(message: LogicalMessage) -> dict[str, Any]:
    """One logical message; ``receiver`` lists every fan-out receiver."""
    return {
        "_id": message.id,
        "originalIds": list(message.ids),
        "batchId": message.batch_id,
        "type": message.conversation_type.value,
        "refId": message.reference_id,
        "sender": participant_to_wire(message.sender),
        "receiver": [participant_to_wire(r) for r in message.receivers],
        **_body_fields(message.body),
        "deliverType": message.delivery_state.value,
        "isForwarded": message.is_forwarded,
        "replyTo": message.reply_to,
        "replyToAvailable": message.reply_to_available,
        "createdAt": message.created_at.isoformat(),
        "updatedAt": message.updated_at.isoformat(),
    }


def unread_to_wire(summary: UnreadSummary) -> dict[str, Any]:
    return {
        "count": summary.count,
        "messages": [message_to_wire(m) for m in summary.messages],
    }
