"""Pipeline assembly, metric aggregation and date-series materialization."""

from crm_dashboard.aggregation.dates import (
    DateRangeTracker,
    materialize_series,
    resolve_chart_window,
    resolve_filter_window,
)
from crm_dashboard.aggregation.engine import MetricsAggregator, card_value
from crm_dashboard.aggregation.stages import AssembledStage, assemble_pipeline, finalize_stages
from crm_dashboard.aggregation.team import TeamRoster

__all__ = [
    "AssembledStage",
    "DateRangeTracker",
    "MetricsAggregator",
    "TeamRoster",
    "assemble_pipeline",
    "card_value",
    "finalize_stages",
    "materialize_series",
    "resolve_chart_window",
    "resolve_filter_window",
]
