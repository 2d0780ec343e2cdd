import asyncio
import json

import click


@click.group()
def main() -> None:
    """CavBot analytics - event ingestion service and tracker tools."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from CAVBOT_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from CAVBOT_PORT or 8787).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the ingestion server."""
    import uvicorn

    from cavbot.settings import CavbotSettings

    settings = CavbotSettings()

    uvicorn.run(
        "cavbot.ingest.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


# ---------------------------------------------------------------------------
# Tracker commands
# ---------------------------------------------------------------------------


def _parse_payload(ctx: click.Context, param: click.Parameter, value: str | None) -> dict:
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise click.BadParameter("must be a JSON object")
    return parsed


@main.command()
@click.argument("name")
@click.option("--payload", default=None, callback=_parse_payload, help="Event payload as a JSON object.")
@click.option("--url", "page_url", default="", help="Page URL to attach as context.")
@click.option("--api-url", default=None, help="Ingestion base URL (default: CAVBOT_API_URL).")
@click.option("--project-key", default=None, help="Tenant credential (default: CAVBOT_PROJECT_KEY).")
def track(name: str, payload: dict, page_url: str, api_url: str | None, project_key: str | None) -> None:
    """Record an event locally and deliver it once."""
    from cavbot.log import setup_logging
    from cavbot.settings import CavbotSettings
    from cavbot.tracker.batcher import EventBatcher
    from cavbot.tracker.context import PageContext, TrackerContext

    settings = CavbotSettings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    if api_url:
        settings.api_url = api_url
    if project_key:
        settings.project_key = project_key

    page = PageContext.for_url(page_url, page_type=settings.page_type, component=settings.component)
    context = TrackerContext.from_settings(settings, page=page)

    async def _run() -> None:
        batcher = EventBatcher.from_settings(settings, context)
        task = batcher.track(name, payload)
        await batcher.aclose(timeout=settings.delivery_timeout + 1)
        if task is None or task.cancelled():
            click.echo("recorded; not delivered")
            return
        result = task.result()
        if result.delivered:
            click.echo(f"delivered (accepted={result.accepted})")
        else:
            click.echo(f"recorded; delivery failed ({result.error or result.status_code})")

    asyncio.run(_run())


@main.command()
@click.option("--limit", default=20, show_default=True, type=int, help="Number of entries to show.")
def events(limit: int) -> None:
    """Show the newest entries of the durable local event log."""
    from cavbot.settings import CavbotSettings
    from cavbot.tracker.buffer import EventBuffer
    from cavbot.tracker.storage import FileStorage

    settings = CavbotSettings()
    entries = EventBuffer(FileStorage(settings.state_dir)).durable_events()
    for entry in entries[-limit:] if limit > 0 else []:
        click.echo(json.dumps(entry, separators=(",", ":")))


@main.command()
@click.argument("project_id")
@click.option("--api-url", default=None, help="Summary Service base URL (default: CAVBOT_API_URL).")
@click.option("--project-key", default=None, help="Tenant credential (default: CAVBOT_PROJECT_KEY).")
def summary(project_id: str, api_url: str | None, project_key: str | None) -> None:
    """Fetch a project summary and print its scalar metrics."""
    from cavbot.settings import CavbotSettings
    from cavbot.tracker.summary import PLACEHOLDER, SummaryClient, format_metric

    settings = CavbotSettings()

    async def _run() -> None:
        client = SummaryClient(api_url or settings.api_url, project_key or settings.project_key)
        try:
            result = await client.fetch(project_id)
        finally:
            await client.aclose()
        if result is None:
            click.echo(f"summary unavailable ({PLACEHOLDER})")
            return
        click.echo(f"project={result.project} window={result.window}")
        for key, value in sorted((result.metrics.model_extra or {}).items()):
            if not isinstance(value, dict | list):
                click.echo(f"  {key}: {format_metric(value)}")
        for bucket in result.metrics.trend7d or []:
            click.echo(f"  {bucket.day}: sessions={bucket.sessions} views404={bucket.views404}")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
