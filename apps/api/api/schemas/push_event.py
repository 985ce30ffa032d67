from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, TypeAdapter


class PushEvent(BaseModel):
    """
    The only part of a GitHub push payload deployd looks at.

    A JSON `null` body or a `null` ref both decode to an empty ref.
    """

    ref: Optional[str] = None

    @property
    def branch_ref(self) -> str:
        return self.ref or ""


push_event_adapter: TypeAdapter[Optional[PushEvent]] = TypeAdapter(Optional[PushEvent])


def decode_push_event(payload: bytes) -> PushEvent:
    """
    Raises pydantic.ValidationError when the body is not a push envelope.
    """
    event = push_event_adapter.validate_json(payload)
    return PushEvent() if event is None else event
