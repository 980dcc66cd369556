"""Pipeline assembly: map cards onto ordered stages, then finalize them for a date window."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Sequence

from crm_dashboard.aggregation.constants import (
    DEFAULT_BADGE_COLOR,
    STAGE_CONTRACT_DATE_TERMS,
    STAGE_MEETING_DATE_TERMS,
)
from crm_dashboard.aggregation.dates import DateRangeTracker
from crm_dashboard.matching import normalize_text
from crm_dashboard.models.card import CrmCard
from crm_dashboard.models.dashboard import CardSummary, StageSnapshot, TagBadge
from crm_dashboard.normalization.attribution import resolve_attribution
from crm_dashboard.normalization.fields import find_field_value
from crm_dashboard.normalization.values import parse_date

PIPELINE_PALETTE = (
    "#0ea5e9",
    "#84cc16",
    "#eab308",
    "#fed7aa",
    "#8b5cf6",
    "#db2777",
    "#16a34a",
    "#ef4444",
    "#737373",
)
DEFAULT_STAGE_ID = "default"
DEFAULT_STAGE_LABEL = "General"
DEFAULT_STAGE_COLOR = "#404040"


@dataclass
class AssembledStage:
    """Stage with every card assigned to it, before date filtering."""

    id: str
    label: str
    color: str
    cards: list[CrmCard] = field(default_factory=list)


def pipeline_color(index: int) -> str:
    return PIPELINE_PALETTE[index % len(PIPELINE_PALETTE)]


def stage_rank(label: str, stage_order: Sequence[str]) -> int:
    """Index of the first canonical fragment matching the label; unknown labels rank last."""
    norm = normalize_text(label)
    for index, fragment in enumerate(stage_order):
        fixed = normalize_text(fragment)
        if norm in fixed or fixed in norm:
            return index
    return len(stage_order)


def _resolve_stage(stages: dict[str, AssembledStage], card: CrmCard) -> AssembledStage:
    stage_id = card.stage_id or ""
    stage_name = normalize_text(card.stage_name)

    if stage_id and stage_id in stages:
        return stages[stage_id]
    if stage_name:
        for stage in stages.values():
            if normalize_text(stage.label) == stage_name:
                return stage
        new_id = stage_id or f"auto-{stage_name}"
        stage = AssembledStage(id=new_id, label=card.stage_name or new_id, color=pipeline_color(len(stages)))
        stages[new_id] = stage
        return stage

    if not stages:
        stages[DEFAULT_STAGE_ID] = AssembledStage(
            id=DEFAULT_STAGE_ID,
            label=DEFAULT_STAGE_LABEL,
            color=DEFAULT_STAGE_COLOR,
        )
    return next(iter(stages.values()))


def assemble_pipeline(
    steps: Iterable[dict[str, Any]],
    cards: Iterable[CrmCard],
    stage_order: Sequence[str],
) -> list[AssembledStage]:
    """
    Seed stages from the source's step list, assign every card, and sort by the
    canonical order. Unknown stage names create new stages; cards without any
    stage go to the first stage (a synthesized "General" one if none exist).
    No card is ever dropped.
    """
    stages: dict[str, AssembledStage] = {}
    for idx, step in enumerate(steps or []):
        stage_id = str(step.get("id", f"step-{idx + 1}"))
        label = step.get("title") or step.get("name") or f"Stage {idx + 1}"
        stages[stage_id] = AssembledStage(id=stage_id, label=str(label), color=pipeline_color(idx))

    for card in cards:
        _resolve_stage(stages, card).cards.append(card)

    # sorted() is stable: unranked stages keep encounter order
    return sorted(stages.values(), key=lambda s: stage_rank(s.label, stage_order))


def _badges(card: CrmCard) -> list[TagBadge]:
    return [TagBadge(name=t.name, color=t.color or DEFAULT_BADGE_COLOR) for t in card.tags[:3]]


def finalize_stages(
    stages: Sequence[AssembledStage],
    tracker: DateRangeTracker,
    card_value: Callable[[CrmCard], Decimal],
    *,
    today: date,
    unassigned_name: str,
) -> list[StageSnapshot]:
    """
    Keep the cards active in the window (created, updated, signed or met),
    summarize them, and sort by position then most recent date.
    """
    snapshots: list[StageSnapshot] = []
    for position, stage in enumerate(stages):
        summaries: list[CardSummary] = []
        total = Decimal("0")
        for card in stage.cards:
            contract_date = parse_date(find_field_value(card, STAGE_CONTRACT_DATE_TERMS))
            meeting_date = parse_date(find_field_value(card, STAGE_MEETING_DATE_TERMS))
            if not (
                tracker.contains(card.created_at)
                or tracker.contains(card.updated_at)
                or tracker.contains(contract_date)
                or tracker.contains(meeting_date)
            ):
                continue
            value = card_value(card)
            total += value
            shown: Optional[date] = None
            if contract_date is not None:
                shown = contract_date.date()
            elif card.created_at is not None:
                shown = card.created_at.date()
            summaries.append(
                CardSummary(
                    id=card.id,
                    title=card.display_title,
                    value=value,
                    responsible_name=card.responsible_user_name or unassigned_name,
                    card_date=shown or today,
                    tags=_badges(card),
                    ad_name=resolve_attribution(card).name,
                    position=card.position,
                )
            )
        summaries.sort(key=lambda s: (s.position, -s.card_date.toordinal()))
        snapshots.append(
            StageSnapshot(
                id=stage.id,
                label=stage.label,
                position=position,
                color=stage.color,
                count=len(summaries),
                value=total,
                record_count=len(stage.cards),
                cards=summaries,
            )
        )
    return snapshots
