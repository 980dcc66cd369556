"""Tests for the metrics aggregator."""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

import pytest

from crm_dashboard.aggregation.engine import MetricsAggregator, card_value
from crm_dashboard.aggregation.stages import assemble_pipeline
from crm_dashboard.connectors.parsers import extract_payload, normalize_payload
from crm_dashboard.models.card import CrmCard, TagCatalog
from crm_dashboard.models.dashboard import DashboardSnapshot, TeamRole
from crm_dashboard.models.filters import DateFilter, DatePreset
from crm_dashboard.models.settings import DashboardSettings


def _aggregate(
    cards: list[CrmCard],
    settings: DashboardSettings,
    today: date,
    date_filter: Optional[DateFilter] = None,
    *,
    steps: Optional[list[dict[str, Any]]] = None,
    catalog: Optional[TagCatalog] = None,
    **kwargs: Any,
) -> DashboardSnapshot:
    stages = assemble_pipeline(steps or [], cards, settings.stage_order)
    return MetricsAggregator(settings, today=today).run(
        stages,
        cards,
        date_filter or DateFilter(preset=DatePreset.MONTH),
        catalog=catalog,
        **kwargs,
    )


@pytest.fixture
def sample_snapshot(
    sample_payload: dict[str, Any],
    settings: DashboardSettings,
    today: date,
) -> DashboardSnapshot:
    """Snapshot of the three sample cards for the current month."""
    batch = normalize_payload(extract_payload(sample_payload))
    return _aggregate(batch.cards, settings, today, steps=batch.steps, catalog=batch.catalog)


class TestCardValue:
    """Monetary resolution shared by stages and metrics."""

    def test_custom_field_fallback(self, make_card: Callable[..., CrmCard]) -> None:
        """Zero monetaryAmount falls back to value-like custom fields."""
        card = make_card(id="1", monetaryAmount=0, customFields={"Honorários": "R$ 3.200,00"})
        assert card_value(card) == Decimal("3200.00")

    def test_unparseable_is_zero(self, make_card: Callable[..., CrmCard]) -> None:
        """Garbage never raises."""
        assert card_value(make_card(id="1", monetaryAmount="a combinar")) == 0


class TestHeadlineMetrics:
    """Headline numbers over the sample payload."""

    def test_totals(self, sample_snapshot: DashboardSnapshot) -> None:
        """Leads, contracts, revenue, cash flow, proposals and commission."""
        m = sample_snapshot.metrics
        assert m.total_leads == 3
        assert m.total_contracts == 1
        assert m.total_revenue == Decimal("5000.00")
        assert m.total_cash_flow == Decimal("1000.00")
        assert m.total_proposals == 1
        assert m.total_proposal_value == Decimal("2500")
        assert m.total_commission == Decimal("50.0000")
        assert m.total_meetings == 0

    def test_revenue_equals_member_sales(self, sample_snapshot: DashboardSnapshot) -> None:
        """Total revenue is the sum of member sales."""
        assert sample_snapshot.metrics.total_revenue == sum(m.sales for m in sample_snapshot.team)

    def test_daily_revenue_on_payment_date(self, sample_snapshot: DashboardSnapshot) -> None:
        """Revenue is charted on the payment day with a breakdown entry."""
        by_day = {p.full_date: p for p in sample_snapshot.daily_revenue}
        point = by_day[date(2026, 3, 10)]
        assert point.value == Decimal("5000.00")
        assert point.day == "10/03"
        assert [b.name for b in point.breakdown] == ["Maria Oliveira"]
        assert sum(p.value for p in sample_snapshot.daily_revenue) == sample_snapshot.metrics.total_revenue

    def test_daily_series_spans_month_to_date(self, sample_snapshot: DashboardSnapshot, today: date) -> None:
        """The month preset charts every day from the 1st through today."""
        days = [p.full_date for p in sample_snapshot.daily_leads]
        assert days[0] == date(2026, 3, 1)
        assert days[-1] == today
        assert len(days) == 15
        counts = {p.full_date: p.count for p in sample_snapshot.daily_leads if p.count}
        assert counts == {date(2026, 3, 2): 1, date(2026, 3, 5): 1, date(2026, 3, 9): 1}

    def test_daily_target(self, sample_snapshot: DashboardSnapshot) -> None:
        """Daily revenue target is the monthly goal over thirty days."""
        assert sample_snapshot.daily_revenue[0].target == Decimal("100000") / 30


class TestContracts:
    """Contract detection and date gating."""

    def test_won_stage_without_contract_date(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """A won stage without a contract date counts on its last update."""
        card = make_card(
            id="1",
            monetaryAmount="R$ 5.000,00",
            stepName="CONTRATO ASSINADO",
            updatedAt="2026-03-12",
        )
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_contracts == 1
        assert snapshot.metrics.total_revenue == Decimal("5000.00")

    def test_contract_outside_window_not_counted(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Contracts signed before the window are not this month's revenue."""
        card = make_card(
            id="1",
            monetaryAmount=1000,
            stepName="CONTRATO ASSINADO",
            customFields={"data assinatura": "2026-01-10"},
            updatedAt="2026-03-12",
        )
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_contracts == 0
        assert snapshot.metrics.total_revenue == 0

    def test_contract_date_alone_counts(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """An explicit contract date counts even outside a won stage."""
        card = make_card(
            id="1",
            monetaryAmount=800,
            stepName="FOLLOW-UP",
            customFields={"data fechamento": "2026-03-03"},
        )
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_contracts == 1
        assert snapshot.metrics.total_revenue == Decimal("800")

    def test_unparseable_money_counts_as_zero(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Bad amounts never abort the run."""
        card = make_card(id="1", monetaryAmount="???", stepName="CONTRATO ASSINADO", updatedAt="2026-03-12")
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_contracts == 1
        assert snapshot.metrics.total_revenue == 0


class TestCashFlow:
    """Cash flow from payments."""

    def test_paid_stage_without_payment_date(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Paid-stage cards without a payment date count in the KPI but not the chart."""
        card = make_card(
            id="1",
            monetaryAmount=700,
            stepName="PAGAMENTO CONFIRMADO",
            updatedAt="2026-03-04",
        )
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_cash_flow == Decimal("700")
        assert all(p.value == 0 for p in snapshot.daily_revenue)

    def test_duplicate_breakdown_suppressed(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """The same title and amount on the same day appears once in the breakdown."""
        cards = [
            make_card(id=str(i), title="Cliente X", monetaryAmount=300, customFields={"data pagamento": "2026-03-06"})
            for i in range(2)
        ]
        snapshot = _aggregate(cards, settings, today)
        point = next(p for p in snapshot.daily_revenue if p.full_date == date(2026, 3, 6))
        assert point.value == Decimal("600")
        assert len(point.breakdown) == 1


class TestMeetingsAndProposals:
    """Meetings by meeting date, proposals by stage."""

    def test_meeting_counted_by_meeting_date(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Meetings count when the meeting date is in the window."""
        cards = [
            make_card(id="1", responsibleUserId="u1", customFields={"data da reuniao": "2026-03-11"}),
            make_card(id="2", responsibleUserId="u1", customFields={"data da reuniao": "2026-02-11"}),
        ]
        snapshot = _aggregate(cards, settings, today)
        assert snapshot.metrics.total_meetings == 1
        assert snapshot.team[0].activity.meetings_held == 1

    def test_negotiation_is_a_proposal(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Negotiation stages count as proposals."""
        card = make_card(id="1", stepName="Negociação", monetaryAmount=900, createdAt="2026-03-02")
        snapshot = _aggregate([card], settings, today)
        assert snapshot.metrics.total_proposals == 1
        assert snapshot.metrics.total_proposal_value == Decimal("900")


class TestTeam:
    """Team rollup."""

    def test_members_and_roles(self, sample_snapshot: DashboardSnapshot) -> None:
        """Members resolve through the directory; unowned cards go to Unassigned."""
        members = {m.id: m for m in sample_snapshot.team}
        assert set(members) == {"u1", "u2", "unassigned"}
        assert members["u2"].role == TeamRole.CLOSER
        assert members["u2"].sales == Decimal("5000.00")
        assert members["u2"].commission == Decimal("50.0000")
        assert members["u2"].activity.conversion_rate == 100
        assert members["u1"].activity.proposals_sent == 1

    def test_same_user_id_one_member(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Different name spellings under one id roll up together."""
        cards = [
            make_card(id="1", responsibleUserId="u9", responsibleUserName="Carla", createdAt="2026-03-02"),
            make_card(id="2", responsibleUserId="u9", responsibleUserName="Carla D.", createdAt="2026-03-03"),
        ]
        snapshot = _aggregate(cards, settings, today)
        assert len(snapshot.team) == 1
        assert snapshot.team[0].activity.leads == 2

    def test_previous_roles_carried_over(
        self,
        sample_payload: dict[str, Any],
        sample_snapshot: DashboardSnapshot,
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Roles from the previous snapshot survive a rebuild."""
        for member in sample_snapshot.team:
            if member.id == "u1":
                member.role = TeamRole.SDR_CLOSER
        batch = normalize_payload(extract_payload(sample_payload))
        rebuilt = _aggregate(batch.cards, settings, today, steps=batch.steps, previous=sample_snapshot)
        assert {m.id: m.role for m in rebuilt.team}["u1"] == TeamRole.SDR_CLOSER


class TestServicesAndAttribution:
    """Service, traffic and creative rollups."""

    def test_services_exclude_operational_tags(self, sample_snapshot: DashboardSnapshot) -> None:
        """Denylisted tags like 'Lead' are not services."""
        services = {s.name: s for s in sample_snapshot.services}
        assert set(services) == {"Previdenciário", "Trabalhista"}
        assert services["Previdenciário"].color == "#112233"
        assert services["Previdenciário"].monetary_value == Decimal("5000.00")
        assert services["Trabalhista"].monetary_value == 0
        assert services["Trabalhista"].color == "#C59D5F"

    def test_accented_denylist_entry(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Denylist matching ignores accents and case."""
        card = make_card(id="1", createdAt="2026-03-02", tags_names="REUNIAO, Orgânico, Cível")
        snapshot = _aggregate([card], settings, today)
        assert [s.name for s in snapshot.services] == ["Cível"]

    def test_traffic_sources(self, sample_snapshot: DashboardSnapshot) -> None:
        """Traffic sources are sorted by leads and colored by channel."""
        traffic = sample_snapshot.traffic
        assert [t.name for t in traffic] == ["Organic", "google"]
        assert traffic[0].leads == 2
        assert traffic[1].color == "#4285F4"
        assert traffic[1].sales_count == 1
        assert traffic[1].conversion_rate == 100

    def test_creatives(self, sample_snapshot: DashboardSnapshot) -> None:
        """Creatives carry leads, sales and revenue."""
        assert len(sample_snapshot.creatives) == 1
        creative = sample_snapshot.creatives[0]
        assert creative.name == "Campanha Março"
        assert creative.source == "google"
        assert (creative.leads, creative.sales) == (1, 1)
        assert creative.revenue == Decimal("5000.00")

    def test_inactive_cards_skip_rollups(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Cards with no activity in the window do not feed services or traffic."""
        card = make_card(id="1", createdAt="2025-06-01", tags_names="Cível", utm_source="facebook")
        snapshot = _aggregate([card], settings, today)
        assert snapshot.services == []
        assert snapshot.traffic == []


class TestPipelineOutput:
    """Stages in the snapshot."""

    def test_stage_order_and_counts(self, sample_snapshot: DashboardSnapshot) -> None:
        """Stages follow the funnel order and every record is accounted for."""
        assert [s.id for s in sample_snapshot.pipeline] == ["s-base", "s-proposal", "s-contract"]
        assert [s.position for s in sample_snapshot.pipeline] == [0, 1, 2]
        assert sum(s.record_count for s in sample_snapshot.pipeline) == 3

    def test_empty_record_counted(self, settings: DashboardSettings, today: date) -> None:
        """An empty record still lands in a stage."""
        batch = normalize_payload(extract_payload([{"id": "1", "stepName": "BASE"}, {}]))
        snapshot = _aggregate(batch.cards, settings, today, DateFilter(preset=DatePreset.ALL), steps=batch.steps)
        assert sum(s.record_count for s in snapshot.pipeline) == 2


class TestAllTime:
    """Whole-history filter."""

    def test_chart_spans_observed_data(
        self,
        make_card: Callable[..., CrmCard],
        settings: DashboardSettings,
        today: date,
    ) -> None:
        """Ten days of leads give a ten-point series under the all preset."""
        cards = [make_card(id=str(d), createdAt=f"2024-03-{d:02d}") for d in range(1, 11)]
        snapshot = _aggregate(cards, settings, today, DateFilter(preset=DatePreset.ALL))
        assert len(snapshot.daily_leads) == 10
        assert snapshot.daily_leads[0].full_date == date(2024, 3, 1)
        assert snapshot.daily_leads[-1].full_date == date(2024, 3, 10)
        assert snapshot.metrics.total_leads == 10

    def test_all_without_data(self, settings: DashboardSettings, today: date) -> None:
        """No cards at all still yields a trailing-year series."""
        snapshot = _aggregate([], settings, today, DateFilter(preset=DatePreset.ALL))
        assert len(snapshot.daily_revenue) == 366
        assert snapshot.pipeline == []
        assert snapshot.team == []
