"""Abstract base class for CRM payload connectors."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from crm_dashboard.connectors.parsers import normalize_payload
from crm_dashboard.models.card import CardBatch
from crm_dashboard.models.raw import RawPayload
from crm_dashboard.models.settings import MissingDatePolicy


class BaseConnector(ABC):
    """
    Standard interface for payload sources.
    Connectors fetch a raw payload; normalization into canonical cards is shared.
    """

    source_id: str = ""

    @abstractmethod
    def fetch_payload(self) -> Optional[RawPayload]:
        """
        Fetch the raw payload. Returns None when the source answered with an empty body.
        """
        pass

    async def afetch_payload(self) -> Optional[RawPayload]:
        """
        Awaitable fetch. Default delegates to the blocking fetch;
        network connectors override it with a non-blocking client.
        """
        return self.fetch_payload()

    def normalize(
        self,
        payload: RawPayload,
        *,
        missing_dates: MissingDatePolicy = MissingDatePolicy.ABSENT,
        now: Optional[datetime] = None,
    ) -> CardBatch:
        """Convert a raw payload to a CardBatch."""
        return normalize_payload(payload, missing_dates=missing_dates, now=now)

    def fetch_all(
        self,
        *,
        missing_dates: MissingDatePolicy = MissingDatePolicy.ABSENT,
        now: Optional[datetime] = None,
    ) -> Optional[CardBatch]:
        """Fetch and normalize in one call; None for an empty body."""
        payload = self.fetch_payload()
        if payload is None:
            return None
        return self.normalize(payload, missing_dates=missing_dates, now=now)
