"""Pipeline orchestration: payload → stages → metrics → snapshot, plus in-memory session state."""

import logging
from datetime import date
from enum import Enum
from typing import Mapping, Optional

from pydantic import ValidationError

from crm_dashboard.aggregation import MetricsAggregator, assemble_pipeline
from crm_dashboard.connectors.base import BaseConnector
from crm_dashboard.errors import DashboardError, PayloadError
from crm_dashboard.models.card import CardBatch
from crm_dashboard.models.dashboard import DashboardSnapshot, TeamRole
from crm_dashboard.models.filters import DateFilter
from crm_dashboard.models.raw import RawPayload
from crm_dashboard.models.settings import DashboardSettings

logger = logging.getLogger(__name__)


def build_dashboard(
    batch: CardBatch,
    date_filter: DateFilter,
    settings: DashboardSettings,
    *,
    previous: Optional[DashboardSnapshot] = None,
    role_overrides: Optional[Mapping[str, TeamRole]] = None,
    today: Optional[date] = None,
) -> DashboardSnapshot:
    """
    Run the full pipeline on one normalized batch: assemble stages, then
    aggregate every card in a single pass. Synchronous and CPU-only.
    """
    stages = assemble_pipeline(batch.steps, batch.cards, settings.stage_order)
    aggregator = MetricsAggregator(settings, today=today)
    return aggregator.run(
        stages,
        batch.cards,
        date_filter,
        catalog=batch.catalog,
        previous=previous,
        role_overrides=role_overrides,
    )


class SessionStatus(str, Enum):
    IDLE = "idle"
    LIVE = "live"
    ERROR = "error"


class DashboardSession:
    """
    In-memory dashboard state for one viewer.

    A failed refresh keeps the last good snapshot and records the error text.
    Overlapping async refreshes are last-write-wins unless
    `settings.discard_stale_refreshes` is set, in which case a completion older
    than the last applied refresh is dropped.
    """

    def __init__(
        self,
        connector: BaseConnector,
        settings: Optional[DashboardSettings] = None,
        *,
        snapshot: Optional[DashboardSnapshot] = None,
    ):
        self.connector = connector
        self.settings = settings or DashboardSettings()
        self.snapshot = snapshot
        self.status = SessionStatus.IDLE
        self.last_error: Optional[str] = None
        self.role_overrides: dict[str, TeamRole] = {}
        self._generation = 0
        self._applied_generation = 0

    def set_role(self, member_id: str, role: TeamRole) -> None:
        """Role edit from the UI; wins over configured roles on every later refresh."""
        self.role_overrides[member_id] = role
        if self.snapshot is not None:
            for member in self.snapshot.team:
                if member.id == member_id:
                    member.role = role

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        return self.settings.discard_stale_refreshes and generation < self._applied_generation

    def _record_failure(self, generation: int, error: DashboardError) -> Optional[DashboardSnapshot]:
        if self._is_stale(generation):
            logger.info("Ignoring failure of stale refresh #%d: %s", generation, error)
            return self.snapshot
        logger.warning("Refresh #%d failed: %s", generation, error)
        self.status = SessionStatus.ERROR
        self.last_error = str(error)
        return self.snapshot

    def _apply(
        self,
        generation: int,
        payload: Optional[RawPayload],
        date_filter: DateFilter,
        today: Optional[date],
    ) -> Optional[DashboardSnapshot]:
        if self._is_stale(generation):
            logger.info("Discarding stale refresh #%d (applied #%d)", generation, self._applied_generation)
            return self.snapshot
        if payload is None:
            return self.snapshot

        try:
            batch = self.connector.normalize(payload, missing_dates=self.settings.missing_date_policy)
        except ValidationError as e:
            error = PayloadError(f"Payload could not be normalized ({e.error_count()} errors)", code="INVALID_PAYLOAD")
            return self._record_failure(generation, error)
        self.snapshot = build_dashboard(
            batch,
            date_filter,
            self.settings,
            previous=self.snapshot,
            role_overrides=self.role_overrides,
            today=today,
        )
        self._applied_generation = generation
        self.status = SessionStatus.LIVE
        self.last_error = None
        return self.snapshot

    def refresh(self, date_filter: DateFilter, *, today: Optional[date] = None) -> Optional[DashboardSnapshot]:
        """Blocking fetch and rebuild. Returns the current snapshot, fresh or stale."""
        generation = self._next_generation()
        try:
            payload = self.connector.fetch_payload()
        except DashboardError as e:
            return self._record_failure(generation, e)
        return self._apply(generation, payload, date_filter, today)

    async def refresh_async(
        self,
        date_filter: DateFilter,
        *,
        today: Optional[date] = None,
    ) -> Optional[DashboardSnapshot]:
        """Awaitable refresh. Suspends only on the fetch; aggregation runs to completion."""
        generation = self._next_generation()
        try:
            payload = await self.connector.afetch_payload()
        except DashboardError as e:
            return self._record_failure(generation, e)
        return self._apply(generation, payload, date_filter, today)
