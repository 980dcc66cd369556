"""Data models for raw payloads, canonical cards, settings and dashboard snapshots."""

from crm_dashboard.models.card import CardBatch, ContactRef, CrmCard, TagCatalog, TagRef
from crm_dashboard.models.dashboard import DashboardSnapshot, TeamMember, TeamRole
from crm_dashboard.models.filters import DateFilter, DatePreset
from crm_dashboard.models.raw import RawCard, RawPayload
from crm_dashboard.models.settings import DashboardSettings, MissingDatePolicy

__all__ = [
    "CardBatch",
    "ContactRef",
    "CrmCard",
    "DashboardSettings",
    "DashboardSnapshot",
    "DateFilter",
    "DatePreset",
    "MissingDatePolicy",
    "RawCard",
    "RawPayload",
    "TagCatalog",
    "TagRef",
    "TeamMember",
    "TeamRole",
]
