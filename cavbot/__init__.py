"""CavBot analytics: client-side event tracking and the ingestion service."""

__version__ = "0.1.0"
