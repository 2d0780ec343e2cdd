"""Event batcher: record an event locally, then deliver it fire-and-forget.

``track`` does its local work synchronously (buffer + durable log), builds a
single-event batch and schedules delivery as a detached task.  The caller
never awaits delivery and never sees its failures.

Delivery policy:

- at most once per ``track`` call: no retry queue, no re-send from the log;
- bounded by an explicit deadline (``delivery_timeout``);
- any transport error, timeout or non-2xx response discards the attempt.

Internally ``_deliver`` returns a ``DeliveryResult``; the only place that
decides to drop a failure is ``_on_delivery_done``, which logs it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from cavbot.models.events import EventBatch, EventRecord

if TYPE_CHECKING:
    from cavbot.settings import CavbotSettings
    from cavbot.tracker.context import TrackerContext

EVENTS_PATH = "/v1/events"
PROJECT_KEY_HEADER = "X-Project-Key"


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    status_code: int | None = None
    accepted: int | None = None
    error: str | None = None


class EventBatcher:
    """Turn ``track(name, payload)`` calls into delivered batches.

    Parameters
    ----------
    context:
        The visit's tracker context (buffer, identities, page context).
    api_url:
        Base URL of the ingestion service, e.g. ``https://api.cavbot.io``.
    project_key:
        Tenant credential sent as ``X-Project-Key``.
    http_client:
        Shared client.  One is created (and closed by ``aclose``) if omitted.
    delivery_timeout:
        Deadline in seconds for one delivery attempt.
    """

    def __init__(
        self,
        context: TrackerContext,
        *,
        api_url: str,
        project_key: str,
        http_client: httpx.AsyncClient | None = None,
        delivery_timeout: float = 8.0,
    ) -> None:
        self.context = context
        self._endpoint = api_url.rstrip("/") + EVENTS_PATH
        self._project_key = project_key
        self._timeout = delivery_timeout
        self._own_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=delivery_timeout)
        self._pending: set[asyncio.Task[DeliveryResult]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: CavbotSettings,
        context: TrackerContext,
        http_client: httpx.AsyncClient | None = None,
    ) -> EventBatcher:
        return cls(
            context,
            api_url=settings.api_url,
            project_key=settings.project_key,
            http_client=http_client,
            delivery_timeout=settings.delivery_timeout,
        )

    # -- Public API ------------------------------------------------------------

    def track(self, name: str, payload: dict[str, Any] | None = None) -> asyncio.Task[DeliveryResult] | None:
        """Record ``name`` and schedule its delivery.

        Returns the delivery task for observation only, or ``None`` when
        nothing was scheduled (empty name, or no running event loop).
        """
        if not name:
            logger.warning("Dropping event with empty name")
            return None

        event = self._build_event(name, payload)
        if event is None:
            return None
        self.context.buffer.record(event)
        batch = self.build_batch([event])

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop -- {!r} recorded but not delivered", name)
            return None

        task = loop.create_task(self._deliver(batch), name=f"cavbot-deliver-{name}")
        self._pending.add(task)
        task.add_done_callback(self._on_delivery_done)
        return task

    def _build_event(self, name: str, payload: dict[str, Any] | None) -> EventRecord | None:
        """Create the event, or log and return ``None`` if it cannot go on the wire."""
        try:
            event = self.context.new_event(name, payload)
            event.model_dump(mode="json")
        except (ValidationError, PydanticSerializationError, TypeError, RecursionError) as e:
            logger.warning("Dropping event {!r}: payload is not JSON-serializable ({})", name, e)
            return None
        return event

    def build_batch(self, events: list[EventRecord]) -> EventBatch:
        page = self.context.page
        identities = self.context.identities
        return EventBatch(
            anonymous_id=identities.anonymous_id(),
            session_key=identities.session_id(),
            page_url=page.page_url,
            route_path=page.route_path,
            page_type=page.page_type,
            component=page.component,
            referrer=page.referrer,
            user_agent=page.user_agent,
            events=events,
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight deliveries.  Returns ``False`` on timeout."""
        if not self._pending:
            return True
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_pending:
            logger.warning("Drain timed out with {} deliveries in flight", len(still_pending))
            return False
        return True

    async def aclose(self, timeout: float | None = None) -> None:
        """Drain, cancel whatever is left, then close an owned HTTP client."""
        if not await self.drain(timeout):
            for task in list(self._pending):
                task.cancel()
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._own_client:
            await self._client.aclose()

    # -- Delivery --------------------------------------------------------------

    async def _deliver(self, batch: EventBatch) -> DeliveryResult:
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self._endpoint,
                    json=batch.to_wire(),
                    headers={PROJECT_KEY_HEADER: self._project_key},
                ),
                timeout=self._timeout,
            )
        except TimeoutError:
            return DeliveryResult(delivered=False, error=f"deadline of {self._timeout}s exceeded")
        except httpx.HTTPError as e:
            return DeliveryResult(delivered=False, error=f"{type(e).__name__}: {e}")

        if not response.is_success:
            return DeliveryResult(delivered=False, status_code=response.status_code, error=response.text[:200])

        accepted = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("accepted"), int):
            accepted = body["accepted"]
        return DeliveryResult(delivered=True, status_code=response.status_code, accepted=accepted)

    def _on_delivery_done(self, task: asyncio.Task[DeliveryResult]) -> None:
        # Telemetry failures stop here: logged, never raised to the caller.
        self._pending.discard(task)
        if task.cancelled():
            logger.debug("Delivery {} cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).warning("Delivery {} crashed", task.get_name())
            return
        result = task.result()
        if result.delivered:
            logger.debug("Delivered {} (accepted={})", task.get_name(), result.accepted)
        else:
            logger.debug("Delivery {} discarded: status={} error={}", task.get_name(), result.status_code, result.error)
