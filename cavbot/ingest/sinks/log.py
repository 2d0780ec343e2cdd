"""Sink that only logs a one-line summary of each batch."""

from __future__ import annotations

from loguru import logger

from cavbot.log import mask_key
from cavbot.models.events import AcceptedBatch


class LogEventSink:
    """Default sink: nothing is stored, the batch is summarised in the log."""

    async def write(self, batch: AcceptedBatch) -> None:
        ctx = batch.context
        logger.info(
            "Batch: project={} anon={} session={} page_type={} component={} route={} count={} malformed={}",
            mask_key(batch.project_key),
            ctx.anonymous_id,
            ctx.session_key,
            ctx.page_type,
            ctx.component,
            ctx.route_path,
            batch.accepted,
            batch.malformed,
        )

    async def close(self) -> None:
        return None
