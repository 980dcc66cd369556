"""Registry for discovering and instantiating payload connectors."""

from typing import Type

from crm_dashboard.connectors.base import BaseConnector
from crm_dashboard.connectors.export import ExportConnector
from crm_dashboard.connectors.webhook import WebhookConnector
from crm_dashboard.models.settings import DashboardSettings


class ConnectorRegistry:
    """Maps source ids ('webhook', 'export') to connector classes."""

    _connectors: dict[str, Type[BaseConnector]] = {
        "webhook": WebhookConnector,
        "export": ExportConnector,
    }

    @classmethod
    def get(cls, source_id: str, **kwargs) -> BaseConnector:
        """Instantiate the connector for source_id; kwargs go to its __init__."""
        connector_cls = cls._connectors.get(source_id.lower())
        if not connector_cls:
            raise ValueError(f"Unknown source: {source_id}. Available: {cls.available_sources()}")
        return connector_cls(**kwargs)

    @classmethod
    def webhook_for(cls, settings: DashboardSettings) -> BaseConnector:
        """Webhook connector configured from settings (endpoint and timeout)."""
        return cls.get("webhook", endpoint_url=settings.endpoint_url, timeout=settings.timeout_seconds)

    @classmethod
    def available_sources(cls) -> list[str]:
        return sorted(cls._connectors)
