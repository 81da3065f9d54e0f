"""Parsed send intents and their wire validation."""

from dataclasses import dataclass
from typing import Any

from ..errors import ValidationError
from .messages import (
    DOCUMENT_KEYS,
    UNKNOWN_NAME,
    ConversationType,
    DeliveryState,
    FileAttachment,
    MessageBody,
    Participant,
)

# Wire keys that must be present on every send
_REQUIRED_FIELDS = ("type", "sender", "message", "receiver", "messageType", "deliverType")


def parse_enum(enum_cls, value: Any, field_name: str):
    """Coerce a wire string to an enum member or raise ValidationError."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name}: {value!r} (expected one of {allowed})",
            details={field_name: value},
        ) from None


def _parse_participant(raw: Any, field_name: str) -> Participant:
    if not isinstance(raw, dict) or not raw.get("userId"):
        raise ValidationError(
            f"{field_name} entries must be objects with a userId",
            details={field_name: raw},
        )
    return Participant(user_id=str(raw["userId"]), name=raw.get("name") or UNKNOWN_NAME)


def _parse_files(raw: Any) -> list[FileAttachment]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("files must be a list", details={"files": raw})

    files = []
    for entry in raw:
        if not isinstance(entry, dict) or "filename" not in entry or "size" not in entry:
            raise ValidationError(
                "each file needs a filename and a size", details={"files": entry}
            )
        files.append(FileAttachment(filename=str(entry["filename"]), size=str(entry["size"])))
    return files


@dataclass
class SendRequest:
    """An outgoing message intent before fan-out."""

    conversation_type: ConversationType
    sender: Participant
    receivers: list[Participant]
    body: MessageBody
    delivery_state: DeliveryState
    reference_id: str | None = None
    is_forwarded: bool = False
    reply_to: str | None = None

    @property
    def receiver_ids(self) -> list[str]:
        return [r.user_id for r in self.receivers]

    @classmethod
    def from_wire(cls, payload: Any) -> "SendRequest":
        """Validate the ``newMessage`` wire object and build a SendRequest."""
        if not isinstance(payload, dict):
            raise ValidationError("Message payload must be an object")

        missing = [key for key in _REQUIRED_FIELDS if not payload.get(key)]
        if missing:
            raise ValidationError(
                "Missing required fields or incorrect data format",
                details={"missing": missing},
            )

        conversation_type = parse_enum(ConversationType, payload["type"], "type")
        delivery_state = parse_enum(DeliveryState, payload["deliverType"], "deliverType")

        reference_id = payload.get("refId")
        if conversation_type is not ConversationType.DIRECT and not reference_id:
            raise ValidationError(
                f"refId is required for {conversation_type.value} messages",
                details={"missing": ["refId"]},
            )

        receivers_raw = payload["receiver"]
        if not isinstance(receivers_raw, list):
            raise ValidationError("receiver must be a list", details={"receiver": receivers_raw})

        is_forwarded = payload.get("isForwarded")
        if is_forwarded is None:
            is_forwarded = False
        elif not isinstance(is_forwarded, bool):
            raise ValidationError(
                "isForwarded must be a boolean", details={"isForwarded": is_forwarded}
            )

        documents = [payload[key] for key in DOCUMENT_KEYS if payload.get(key)]

        body = MessageBody(
            message_type=str(payload["messageType"]),
            content=str(payload["message"]),
            image_name=payload.get("imagename") or None,
            documents=documents,
            doc_icon=payload.get("docicon") or None,
            files=_parse_files(payload.get("files")),
        )

        return cls(
            conversation_type=conversation_type,
            sender=_parse_participant(payload["sender"], "sender"),
            receivers=[_parse_participant(r, "receiver") for r in receivers_raw],
            body=body,
            delivery_state=delivery_state,
            reference_id=str(reference_id) if reference_id else None,
            is_forwarded=is_forwarded,
            reply_to=payload.get("replyTo") or None,
        )
