from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    content: str
    sent_at: int
    type: int
    to: str = ""
    group_id: str = ""
    from_user_id: str = ""
    to_user_id: str = ""

    def with_type(self, message_type: int) -> Message:
        return replace(self, type=message_type)
