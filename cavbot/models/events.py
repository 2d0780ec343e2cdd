"""Wire models for tracked events and delivery batches.

``EventBatch`` is what the tracker sends; ``IncomingBatch`` is how the
ingestion endpoint reads a request body.  The two are separate because the
endpoint is permissive: context fields of the wrong type are dropped and an
``events`` value that is not an array counts as an empty batch, whereas the
tracker always builds a well-formed batch.
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

_CONTEXT_FIELDS = (
    "anonymous_id",
    "session_key",
    "page_url",
    "route_path",
    "page_type",
    "component",
    "referrer",
    "user_agent",
)


class EventRecord(BaseModel):
    """One observed occurrence.  Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("payload", mode="before")
    @classmethod
    def _detach_payload(cls, value: Any) -> Any:
        if value is None:
            return {}
        return copy.deepcopy(value)


class EventBatch(BaseModel):
    """One HTTP delivery unit: shared page context plus its events."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    anonymous_id: str
    session_key: str
    page_url: str = ""
    route_path: str = ""
    page_type: str = ""
    component: str = ""
    referrer: str = ""
    user_agent: str = ""
    events: list[EventRecord] = Field(min_length=1)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready body for ``POST /v1/events``."""
        return self.model_dump(mode="json", by_alias=True)


class IncomingBatch(BaseModel):
    """Lenient reading of a ``POST /v1/events`` body.

    Validating a ``dict`` never fails: unusable context values become
    ``None`` and a missing or non-array ``events`` becomes ``[]``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    anonymous_id: str | None = None
    session_key: str | None = None
    page_url: str | None = None
    route_path: str | None = None
    page_type: str | None = None
    component: str | None = None
    referrer: str | None = None
    user_agent: str | None = None
    events: list[Any] = Field(default_factory=list)

    @field_validator(*_CONTEXT_FIELDS, mode="before")
    @classmethod
    def _only_strings(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("events", mode="before")
    @classmethod
    def _only_arrays(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []

    def split_events(self) -> tuple[list[EventRecord], int]:
        """Return the well-formed events and the number of malformed ones."""
        records: list[EventRecord] = []
        malformed = 0
        for raw in self.events:
            try:
                records.append(EventRecord.model_validate(raw))
            except (ValidationError, RecursionError):
                malformed += 1
        return records, malformed


class AcceptedBatch(BaseModel):
    """A validated batch as handed to an event sink."""

    project_key: str
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    context: IncomingBatch
    events: list[EventRecord]
    accepted: int
    malformed: int = 0

    def event_documents(self) -> list[dict[str, Any]]:
        """Flatten to one JSON-ready document per event, context inlined."""
        context = self.context.model_dump(mode="json", by_alias=True, exclude={"events"})
        received_at = self.received_at.isoformat()
        return [
            {
                "projectKey": self.project_key,
                "receivedAt": received_at,
                **context,
                **event.model_dump(mode="json"),
            }
            for event in self.events
        ]


class IngestResponse(BaseModel):
    """Acknowledgement body for an accepted batch."""

    status: str = "ok"
    accepted: int
