"""Metrics aggregator: one pass over all cards producing a DashboardSnapshot."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from crm_dashboard.aggregation.constants import (
    BREAKDOWN_DUPLICATE_TOLERANCE,
    CONTRACT_DATE_TERMS,
    DEFAULT_SERVICE_COLOR,
    DEFAULT_TRAFFIC_COLOR,
    ENTRY_VALUE_TERMS,
    MEETING_DATE_TERMS,
    MONETARY_TERMS,
    OPERATIONAL_TAGS,
    PAYMENT_DATE_TERMS,
    TRAFFIC_COLORS,
    UNASSIGNED_USER_NAME,
)
from crm_dashboard.aggregation.dates import (
    DailyBucket,
    DateRangeTracker,
    materialize_series,
    resolve_chart_window,
    resolve_filter_window,
)
from crm_dashboard.aggregation.stages import AssembledStage, finalize_stages
from crm_dashboard.aggregation.team import TeamRoster, percent
from crm_dashboard.matching import contains_any, normalize_text
from crm_dashboard.models.card import CrmCard, TagCatalog
from crm_dashboard.models.dashboard import (
    BreakdownItem,
    CreativeMetrics,
    DashboardSnapshot,
    HeadlineMetrics,
    LeadPoint,
    RevenuePoint,
    ServiceRollup,
    TeamRole,
    TrafficSource,
)
from crm_dashboard.models.filters import DateFilter, DatePreset
from crm_dashboard.models.settings import DashboardSettings
from crm_dashboard.normalization.attribution import resolve_attribution
from crm_dashboard.normalization.fields import find_field_value
from crm_dashboard.normalization.values import ZERO, parse_date, parse_monetary

logger = logging.getLogger(__name__)

TOP_SERVICES = 10
DAYS_PER_MONTH = 30


def card_value(card: CrmCard) -> Decimal:
    """Monetary amount, falling back to value-like custom fields when it is empty or zero."""
    value = parse_monetary(card.monetary_amount)
    if value == 0:
        value = parse_monetary(find_field_value(card, MONETARY_TERMS))
    return value


def traffic_color(source_key: str) -> str:
    for fragment, color in TRAFFIC_COLORS:
        if fragment in source_key:
            return color
    return DEFAULT_TRAFFIC_COLOR


@dataclass
class _RunState:
    """Accumulators for one aggregation run. Never shared between runs."""

    tracker: DateRangeTracker
    roster: TeamRoster
    catalog: TagCatalog
    metrics: HeadlineMetrics = field(default_factory=HeadlineMetrics)
    daily_revenue: dict[str, DailyBucket] = field(default_factory=dict)
    daily_leads: dict[str, DailyBucket] = field(default_factory=dict)
    services: dict[str, ServiceRollup] = field(default_factory=dict)
    traffic: dict[str, TrafficSource] = field(default_factory=dict)
    creatives: dict[str, CreativeMetrics] = field(default_factory=dict)


class MetricsAggregator:
    """
    Reduces a card set and date filter into a DashboardSnapshot.
    Each metric is gated by the date most relevant to it rather than one global gate:
    leads by creation, meetings by meeting date, contracts by contract date,
    cash flow and the revenue chart by payment date.
    """

    def __init__(self, settings: DashboardSettings, *, today: Optional[date] = None):
        self.settings = settings
        self.today = today

    def run(
        self,
        stages: Sequence[AssembledStage],
        cards: Sequence[CrmCard],
        date_filter: DateFilter,
        *,
        catalog: Optional[TagCatalog] = None,
        previous: Optional[DashboardSnapshot] = None,
        role_overrides: Optional[Mapping[str, TeamRole]] = None,
    ) -> DashboardSnapshot:
        today = self.today or date.today()
        window = resolve_filter_window(date_filter, today)

        overrides: dict[str, TeamRole] = previous.role_map() if previous else {}
        overrides.update(role_overrides or {})

        state = _RunState(
            tracker=DateRangeTracker(window),
            roster=TeamRoster(self.settings, overrides),
            catalog=catalog or TagCatalog(),
        )
        for card in cards:
            self._process_card(state, card)

        pipeline = finalize_stages(
            stages,
            state.tracker,
            card_value,
            today=today,
            unassigned_name=UNASSIGNED_USER_NAME,
        )
        team = state.roster.finalize()

        chart_window = resolve_chart_window(
            state.tracker,
            whole_history=date_filter.preset == DatePreset.ALL,
            today=today,
        )
        daily_target = Decimal(self.settings.goals.revenue_target) / DAYS_PER_MONTH
        daily_revenue = [
            RevenuePoint(
                day=p.day.strftime("%d/%m"),
                full_date=p.day,
                target=daily_target,
                value=p.value,
                breakdown=p.breakdown,
            )
            for p in materialize_series(state.daily_revenue, chart_window.start, chart_window.end)
        ]
        daily_leads = [
            LeadPoint(day=p.day.strftime("%d/%m"), full_date=p.day, count=int(p.value))
            for p in materialize_series(state.daily_leads, chart_window.start, chart_window.end)
        ]

        services = sorted(state.services.values(), key=lambda s: s.count, reverse=True)[:TOP_SERVICES]
        creatives = sorted(state.creatives.values(), key=lambda c: c.revenue, reverse=True)
        traffic = sorted(state.traffic.values(), key=lambda t: t.leads, reverse=True)

        logger.debug(
            "Aggregated %d cards into %d stages, %d members (window %s..%s)",
            len(cards),
            len(pipeline),
            len(team),
            window.start,
            window.end,
        )
        return DashboardSnapshot(
            last_updated=datetime.now(timezone.utc),
            metrics=state.metrics,
            daily_revenue=daily_revenue,
            daily_leads=daily_leads,
            services=services,
            traffic=traffic,
            creatives=creatives,
            pipeline=pipeline,
            team=team,
            goals=self.settings.goals,
            filter_window=window,
            chart_window=chart_window,
        )

    def _process_card(self, state: _RunState, card: CrmCard) -> None:
        settings = self.settings
        tracker = state.tracker
        metrics = state.metrics

        value = card_value(card)
        created = card.created_at
        updated = card.updated_at
        meeting_date = parse_date(find_field_value(card, MEETING_DATE_TERMS))
        contract_date = parse_date(find_field_value(card, CONTRACT_DATE_TERMS))
        payment_date = parse_date(find_field_value(card, PAYMENT_DATE_TERMS))
        entry_value = parse_monetary(find_field_value(card, ENTRY_VALUE_TERMS))

        stage = normalize_text(card.stage_name)
        won_stage = contains_any(stage, settings.won_stage_markers)
        paid_stage = contains_any(stage, settings.paid_stage_markers)
        # Stage classification and a logged payment are independent win signals
        effective_win = won_stage or payment_date is not None

        effective_contract_date = contract_date
        if effective_contract_date is None and won_stage:
            effective_contract_date = updated or created

        member = state.roster.resolve(card)
        activity = member.activity

        if tracker.contains(created):
            _add_to_day(state.daily_leads, created, Decimal(1))
            activity.leads += 1
            metrics.total_leads += 1

        if tracker.contains(meeting_date):
            metrics.total_meetings += 1
            activity.meetings_held += 1

        if (won_stage or contract_date is not None) and tracker.contains(effective_contract_date):
            metrics.total_contracts += 1
            activity.contracts_signed += 1
            metrics.total_revenue += value
            member.sales += value
            commission = state.roster.commission(member, entry_value)
            member.commission += commission
            metrics.total_commission += commission

        cash_in = entry_value if entry_value > 0 else value
        if payment_date is not None and tracker.contains(payment_date):
            metrics.total_cash_flow += cash_in
            if value > 0:
                _add_to_day(
                    state.daily_revenue,
                    payment_date,
                    value,
                    item=BreakdownItem(name=card.display_title, value=value),
                )
        elif paid_stage and payment_date is None:
            # Counted in the KPI only; the chart holds explicitly dated payments
            if tracker.contains(updated or created):
                metrics.total_cash_flow += cash_in

        if (tracker.contains(created) or tracker.contains(updated)) and contains_any(
            stage, settings.proposal_stage_markers
        ):
            metrics.total_proposal_value += value
            metrics.total_proposals += 1
            activity.proposals_sent += 1

        active = (
            tracker.contains(created)
            or tracker.contains(effective_contract_date)
            or tracker.contains(updated)
        )
        if not active:
            return

        self._accumulate_services(state, card, value, effective_win)
        self._accumulate_attribution(state, card, value, effective_win, tracker.contains(created))

    def _accumulate_services(
        self,
        state: _RunState,
        card: CrmCard,
        value: Decimal,
        effective_win: bool,
    ) -> None:
        seen: set[str] = set()
        for tag in card.tags:
            key = normalize_text(tag.name)
            if not key or key in seen or key in OPERATIONAL_TAGS:
                continue
            seen.add(key)
            rollup = state.services.get(key)
            if rollup is None:
                color = tag.color or state.catalog.color_for(tag.name) or DEFAULT_SERVICE_COLOR
                rollup = ServiceRollup(name=tag.name, color=color)
                state.services[key] = rollup
            rollup.count += 1
            if effective_win:
                rollup.monetary_value += value

    def _accumulate_attribution(
        self,
        state: _RunState,
        card: CrmCard,
        value: Decimal,
        effective_win: bool,
        created_in_range: bool,
    ) -> None:
        ad = resolve_attribution(card)

        source_key = normalize_text(ad.source)
        source = state.traffic.get(source_key)
        if source is None:
            source = TrafficSource(name=ad.source, color=traffic_color(source_key))
            state.traffic[source_key] = source
        if created_in_range:
            source.leads += 1
        if effective_win:
            source.sales_count += 1
        if source.leads > 0:
            source.conversion_rate = percent(source.sales_count, source.leads)

        if ad.name:
            creative = state.creatives.get(ad.name)
            if creative is None:
                creative = CreativeMetrics(id=ad.name, name=ad.name, url=ad.url, source=ad.source)
                state.creatives[ad.name] = creative
            if created_in_range:
                creative.leads += 1
            if effective_win:
                creative.sales += 1
                creative.revenue += value


def _add_to_day(
    buckets: dict[str, DailyBucket],
    when: datetime,
    amount: Decimal,
    *,
    item: Optional[BreakdownItem] = None,
) -> None:
    key = when.date().isoformat()
    bucket = buckets.setdefault(key, DailyBucket())
    bucket.value += amount
    if item is not None and not any(
        b.name == item.name and abs(b.value - item.value) < BREAKDOWN_DUPLICATE_TOLERANCE
        for b in bucket.breakdown
    ):
        bucket.breakdown.append(item)
