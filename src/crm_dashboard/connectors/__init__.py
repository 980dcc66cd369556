"""Payload connectors for CRM ingestion."""

from crm_dashboard.connectors.base import BaseConnector
from crm_dashboard.connectors.export import ExportConnector
from crm_dashboard.connectors.registry import ConnectorRegistry
from crm_dashboard.connectors.webhook import WebhookConnector

__all__ = ["BaseConnector", "ConnectorRegistry", "ExportConnector", "WebhookConnector"]
