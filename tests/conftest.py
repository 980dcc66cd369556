"""Pytest fixtures for crm-dashboard tests."""

from datetime import date
from typing import Any, Callable

import pytest

from crm_dashboard.connectors.parsers import normalize_card
from crm_dashboard.models.card import CrmCard, TagCatalog
from crm_dashboard.models.dashboard import TeamRole
from crm_dashboard.models.raw import RawCard
from crm_dashboard.models.settings import DashboardSettings, DirectoryEntry


@pytest.fixture
def today() -> date:
    """Fixed reference day so windows and series are deterministic."""
    return date(2026, 3, 15)


@pytest.fixture
def settings() -> DashboardSettings:
    """Settings with a two-person team directory."""
    return DashboardSettings(
        user_directory={
            "u1": DirectoryEntry(name="Ana Souza", role=TeamRole.SDR),
            "u2": DirectoryEntry(name="Bruno Lima", role=TeamRole.CLOSER),
        }
    )


@pytest.fixture
def make_card() -> Callable[..., CrmCard]:
    """Build a canonical card from raw webhook fields."""

    def _make(catalog: TagCatalog | None = None, **data: Any) -> CrmCard:
        return normalize_card(RawCard(data=data), catalog or TagCatalog())

    return _make


@pytest.fixture
def sample_steps() -> list[dict[str, Any]]:
    """Stage definitions as shipped by the webhook, deliberately out of funnel order."""
    return [
        {"id": "s-contract", "title": "CONTRATO ASSINADO"},
        {"id": "s-base", "title": "BASE (Entrada Inicial)"},
        {"id": "s-proposal", "title": "PROPOSTA ENVIADA"},
    ]


@pytest.fixture
def sample_tags() -> list[dict[str, Any]]:
    """Tag catalog shipped alongside the cards."""
    return [
        {"id": "t-prev", "name": "Previdenciário", "bgColor": "#112233"},
        {"id": "t-lead", "name": "Lead", "color": "#999999"},
    ]


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """Three cards: a signed contract, an open proposal and a fresh lead."""
    return [
        {
            "id": "c1",
            "title": "Maria Oliveira",
            "monetaryAmount": "R$ 5.000,00",
            "createdAt": "2026-03-02T10:00:00Z",
            "updatedAt": "2026-03-10T10:00:00Z",
            "stepId": "s-contract",
            "stepName": "CONTRATO ASSINADO",
            "responsibleUser": {"id": "u2", "name": "Bruno Lima"},
            "tagIds": ["t-prev"],
            "customFields": {"data-do-pagamento": "2026-03-10", "valor-da-entrada": "1.000,00"},
            "contactDetails": {"name": "Maria Oliveira", "utm": {"source": "google", "campaign": "Campanha Março"}},
        },
        {
            "id": "c2",
            "title": "João Pereira",
            "monetaryAmount": 2500,
            "createdAt": "2026-03-05",
            "stepId": "s-proposal",
            "stepName": "PROPOSTA ENVIADA",
            "responsibleUser": {"id": "u1", "name": "Ana Souza"},
            "tags": [{"id": "t-lead"}],
        },
        {
            "id": "c3",
            "name": "Lead sem título",
            "createdAt": 1773057600000,
            "stepName": "BASE (Entrada Inicial)",
            "tags_names": "Trabalhista, Lead",
        },
    ]


@pytest.fixture
def sample_payload(
    sample_records: list[dict[str, Any]],
    sample_steps: list[dict[str, Any]],
    sample_tags: list[dict[str, Any]],
) -> dict[str, Any]:
    """Webhook body in the {data, steps, tags} shape."""
    return {"data": sample_records, "steps": sample_steps, "tags": sample_tags}
