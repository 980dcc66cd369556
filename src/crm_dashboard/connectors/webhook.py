"""Webhook connector: one GET against the dashboard-data endpoint."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import httpx

from crm_dashboard.connectors.base import BaseConnector
from crm_dashboard.connectors.parsers import parse_response_text
from crm_dashboard.errors import TransportError
from crm_dashboard.models.raw import RawPayload
from crm_dashboard.models.settings import DEFAULT_ENDPOINT_URL, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class WebhookConnector(BaseConnector):
    """
    Connector for the automation webhook that exports CRM cards, steps and tags.
    Each request carries a cache-busting `_t` timestamp and is abandoned after `timeout` seconds.
    """

    source_id = "webhook"

    DEFAULT_HEADERS = {
        "User-Agent": "crm-dashboard/0.1",
        "Accept": "application/json",
    }

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint_url = endpoint_url or DEFAULT_ENDPOINT_URL
        self.timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self._client = client or httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.DEFAULT_HEADERS,
        )
        self._async_client = async_client

    def _params(self) -> dict[str, str]:
        return {"_t": str(int(time.time() * 1000))}

    @contextmanager
    def _transport_errors(self) -> Iterator[None]:
        """Translate httpx failures into TransportError."""
        try:
            yield
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timed out after {self.timeout:g}s",
                code="TIMEOUT",
                url=self.endpoint_url,
            ) from e
        except httpx.HTTPStatusError as e:
            response = e.response
            raise TransportError(
                f"Status {response.status_code}: {response.reason_phrase}",
                code="HTTP_STATUS",
                status_code=response.status_code,
                url=self.endpoint_url,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__, code="NETWORK", url=self.endpoint_url) from e

    def _fetch_text(self) -> str:
        with self._transport_errors():
            response = self._client.get(self.endpoint_url, params=self._params())
            response.raise_for_status()
        return response.text

    async def _afetch_text(self) -> str:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self.DEFAULT_HEADERS,
            )
        with self._transport_errors():
            response = await self._async_client.get(self.endpoint_url, params=self._params())
            response.raise_for_status()
        return response.text

    def fetch_payload(self) -> Optional[RawPayload]:
        payload = parse_response_text(self._fetch_text())
        if payload is None:
            logger.info("Empty response from %s", self.endpoint_url)
        return payload

    async def afetch_payload(self) -> Optional[RawPayload]:
        payload = parse_response_text(await self._afetch_text())
        if payload is None:
            logger.info("Empty response from %s", self.endpoint_url)
        return payload

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        if self._async_client is not None:
            await self._async_client.aclose()
