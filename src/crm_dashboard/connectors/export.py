"""Export connector: reads a payload previously saved by `crm-dashboard fetch`."""

from pathlib import Path
from typing import Optional

from crm_dashboard.connectors.base import BaseConnector
from crm_dashboard.connectors.parsers import parse_response_text
from crm_dashboard.errors import PayloadError
from crm_dashboard.models.raw import RawPayload


class ExportConnector(BaseConnector):
    """Offline source: same payload shapes as the webhook, read from a JSON file."""

    source_id = "export"

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def fetch_payload(self) -> Optional[RawPayload]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise PayloadError(f"Could not read {self.path}: {e}", code="READ_FAILED") from e
        return parse_response_text(text)
