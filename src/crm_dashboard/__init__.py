"""CRM pipeline dashboard: ingestion and aggregation of webhook card exports."""

__version__ = "0.1.0"
