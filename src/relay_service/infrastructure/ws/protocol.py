"""WebSocket message envelope models."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, StrictInt
from pydantic import ValidationError as PydanticValidationError

from relay_service.application.exceptions import MalformedEnvelopeError
from relay_service.domain.entities.message import Message


class WsEnvelope(BaseModel):
    """Wire form of a relay message, in both directions."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    content: str = ""
    sent_at: StrictInt = 0
    type: StrictInt = 0
    to: str = ""
    group_id: str = ""
    from_user_id: str = ""
    to_user_id: str = ""


def encode_message(message: Message) -> str:
    return WsEnvelope(
        id=message.id,
        content=message.content,
        sent_at=int(message.sent_at),
        type=int(message.type),
        to=message.to,
        group_id=message.group_id,
        from_user_id=message.from_user_id,
        to_user_id=message.to_user_id,
    ).model_dump_json()


def decode_message(raw: str | bytes) -> Message:
    try:
        env = WsEnvelope.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise MalformedEnvelopeError(str(exc)) from exc
    return Message(
        id=env.id,
        content=env.content,
        sent_at=env.sent_at,
        type=env.type,
        to=env.to,
        group_id=env.group_id,
        from_user_id=env.from_user_id,
        to_user_id=env.to_user_id,
    )
