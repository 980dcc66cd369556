"""Dashboard snapshot: the single value handed to the presentation layer."""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, Field, PlainSerializer

# Money stays exact internally and is rendered as a plain JSON number.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TeamRole(str, Enum):
    SDR = "SDR"
    CLOSER = "Closer"
    SDR_CLOSER = "SDR/Closer"
    SELLER = "Seller"


class Goals(BaseModel):
    """Targets shown next to the headline metrics."""

    revenue_target: Money = Decimal("100000")
    contracts_target: int = 20
    cash_flow_target: Money = Decimal("50000")


class DateWindow(BaseModel):
    start: date
    end: date


class BreakdownItem(BaseModel):
    name: str
    value: Money


class DailyPoint(BaseModel):
    """One materialized calendar day."""

    day: date
    value: Money = Decimal("0")
    breakdown: list[BreakdownItem] = Field(default_factory=list)


class RevenuePoint(BaseModel):
    day: str = Field(..., description="DD/MM label")
    full_date: date
    target: Money
    value: Money
    breakdown: list[BreakdownItem] = Field(default_factory=list)


class LeadPoint(BaseModel):
    day: str
    full_date: date
    count: int


class ServiceRollup(BaseModel):
    """Per-tag service breakdown."""

    name: str
    count: int = 0
    monetary_value: Money = Decimal("0")
    color: str


class TrafficSource(BaseModel):
    name: str
    leads: int = 0
    sales_count: int = 0
    conversion_rate: int = 0
    color: str = "#808080"


class CreativeMetrics(BaseModel):
    id: str
    name: str
    url: Optional[str] = None
    source: str
    leads: int = 0
    sales: int = 0
    revenue: Money = Decimal("0")


class TeamActivity(BaseModel):
    leads: int = 0
    meetings_held: int = 0
    proposals_sent: int = 0
    contracts_signed: int = 0
    conversion_rate: int = 0


class TeamMember(BaseModel):
    id: str
    name: str
    role: TeamRole = TeamRole.SELLER
    avatar_initials: str = "?"
    sales: Money = Decimal("0")
    target: Money = Decimal("100000")
    commission: Money = Decimal("0")
    activity: TeamActivity = Field(default_factory=TeamActivity)


class TagBadge(BaseModel):
    name: str
    color: str


class CardSummary(BaseModel):
    """Card as shown inside a pipeline stage."""

    id: str
    title: str
    value: Money
    responsible_name: str
    card_date: date
    tags: list[TagBadge] = Field(default_factory=list)
    ad_name: Optional[str] = None
    position: int = 0


class StageSnapshot(BaseModel):
    id: str
    label: str
    position: int
    color: str
    count: int = Field(0, description="Cards visible in the filter window")
    value: Money = Decimal("0")
    record_count: int = Field(0, description="All records assigned to the stage")
    cards: list[CardSummary] = Field(default_factory=list)


class HeadlineMetrics(BaseModel):
    total_revenue: Money = Decimal("0")
    total_contracts: int = 0
    total_cash_flow: Money = Decimal("0")
    total_meetings: int = 0
    total_commission: Money = Decimal("0")
    total_proposal_value: Money = Decimal("0")
    total_proposals: int = 0
    total_leads: int = 0


class DashboardSnapshot(BaseModel):
    """Complete output of one aggregation run."""

    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metrics: HeadlineMetrics = Field(default_factory=HeadlineMetrics)
    daily_revenue: list[RevenuePoint] = Field(default_factory=list)
    daily_leads: list[LeadPoint] = Field(default_factory=list)
    services: list[ServiceRollup] = Field(default_factory=list)
    traffic: list[TrafficSource] = Field(default_factory=list)
    creatives: list[CreativeMetrics] = Field(default_factory=list)
    pipeline: list[StageSnapshot] = Field(default_factory=list)
    team: list[TeamMember] = Field(default_factory=list)
    goals: Goals = Field(default_factory=Goals)
    filter_window: Optional[DateWindow] = None
    chart_window: Optional[DateWindow] = None

    def role_map(self) -> dict[str, TeamRole]:
        """Member id -> role, used to carry role edits into the next run."""
        return {m.id: m.role for m in self.team}
