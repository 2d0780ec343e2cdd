"""Event ingestion endpoint.

``POST /v1/events`` walks each request through
``RECEIVED -> VALIDATING -> ACCEPTED | REJECTED``:

- no credential: 401 (handled by the ``ProjectKey`` dependency);
- body that is not a JSON object: 400;
- anything else: 200 with the number of events in the batch.

Ingestion is permissive.  Malformed individual events are counted and
logged but never reject the batch; only well-formed events reach the sink.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from cavbot.ingest.deps import ProjectKey, Sink
from cavbot.log import mask_key
from cavbot.models.events import AcceptedBatch, IncomingBatch, IngestResponse

router = APIRouter(tags=["events"])


@router.post("/events", response_model=IngestResponse)
async def ingest_events(request: Request, project_key: ProjectKey, sink: Sink) -> IngestResponse | JSONResponse:
    """Validate and acknowledge one batch of events."""
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (ValueError, RecursionError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid JSON body"})
    if not isinstance(body, dict):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid JSON body"})

    incoming = IncomingBatch.model_validate(body)
    records, malformed = incoming.split_events()
    accepted = len(incoming.events)

    if malformed:
        logger.info("Batch from {} carried {} malformed events (tolerated)", mask_key(project_key), malformed)

    batch = AcceptedBatch(
        project_key=project_key,
        context=incoming,
        events=records,
        accepted=accepted,
        malformed=malformed,
    )
    # The acknowledgement does not depend on the sink.
    try:
        await sink.write(batch)
    except Exception:
        logger.exception("Event sink {} failed for project {}", type(sink).__name__, mask_key(project_key))

    return IngestResponse(accepted=accepted)
