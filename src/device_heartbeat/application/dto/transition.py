"""Wire format of scheduled transition messages shared by every replica."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from device_heartbeat.domain.exceptions import MalformedTransitionError
from device_heartbeat.domain.heartbeat import HeartbeatState, Transition


class TransitionPayload(BaseModel):
    """JSON body ``{"uuid": ..., "nextState": ...}`` stored in the queue."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    uuid: str = Field(min_length=1)
    next_state: HeartbeatState = Field(alias="nextState")


def encode_transition(device_id: str, next_state: HeartbeatState) -> str:
    payload = TransitionPayload(uuid=device_id, next_state=next_state)
    return payload.model_dump_json(by_alias=True)


def decode_transition(body: str) -> Transition:
    """Parse a queue body, raising ``MalformedTransitionError`` on any defect."""
    try:
        payload = TransitionPayload.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedTransitionError(f"invalid transition payload: {body!r}") from exc
    return Transition(device_id=payload.uuid, next_state=payload.next_state)


__all__ = ["TransitionPayload", "decode_transition", "encode_transition"]
