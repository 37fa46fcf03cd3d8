import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.events.contracts import ContractModel, parse_payload
from app.models.outbox import OutboxEvent

SPEC_VERSION = "1.0"


class EventEnvelope(BaseModel):
    """CloudEvent-style wrapper put on every topic. Message key is the aggregate id."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    spec_version: str = SPEC_VERSION
    event_id: uuid.UUID
    event_type: str
    event_version: int = 1
    source: str
    occurred_at: datetime
    correlation_id: Optional[str] = None
    data: Dict[str, Any]

    @classmethod
    def from_outbox(cls, event: OutboxEvent, source: str) -> "EventEnvelope":
        headers = event.headers or {}
        return cls(
            event_id=event.id,
            event_type=event.event_type,
            event_version=event.event_version,
            source=source,
            occurred_at=event.created_at,
            correlation_id=headers.get("correlationId"),
            data=event.payload,
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "EventEnvelope":
        # Raises pydantic.ValidationError (a ValueError) on malformed input
        return cls.model_validate_json(raw)

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    def payload(self) -> ContractModel:
        """Returns the typed payload for this event type."""
        return parse_payload(self.event_type, self.data)


def message_headers(event: OutboxEvent) -> List[Tuple[str, bytes]]:
    """Broker headers, so consumers can filter on eventType without deserializing the value."""
    return [
        ("eventType", event.event_type.encode("utf-8")),
        ("eventVersion", str(event.event_version).encode("utf-8")),
        ("aggregateType", event.aggregate_type.encode("utf-8")),
    ]
