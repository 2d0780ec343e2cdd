from cavbot.models.events import AcceptedBatch, EventBatch, EventRecord, IncomingBatch, IngestResponse
from cavbot.models.summary import ProjectSummary, RouteViews, SummaryMetrics, TrendBucket

__all__ = [
    "AcceptedBatch",
    "EventBatch",
    "EventRecord",
    "IncomingBatch",
    "IngestResponse",
    "ProjectSummary",
    "RouteViews",
    "SummaryMetrics",
    "TrendBucket",
]
