"""prodflow-core: multi-tenant product management service."""

__version__ = "1.0.0"
