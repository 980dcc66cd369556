"""Dashboard settings: source endpoint, team directory, stage ordering and business rules."""

import os
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings loading. Run: pip install -e ."
    ) from e
from pydantic import BaseModel, Field, ValidationError

from crm_dashboard.errors import ConfigError
from crm_dashboard.matching import normalize_text
from crm_dashboard.models.dashboard import Goals, TeamRole

DEFAULT_ENDPOINT_URL = "http://localhost:5678/webhook/dashboard-data"
DEFAULT_TIMEOUT_SECONDS = 180.0

# Canonical funnel order; stages are ranked by the first fragment that matches their label.
DEFAULT_STAGE_ORDER = [
    "BASE (Entrada Inicial)",
    "QUALIFICADO (Lead com potencial)",
    "DESQUALIFICADO (Lead sem potencial)",
    "FOLLOW-UP (Em acompanhamento)",
    "REUNIÃO AGENDADA",
    "NO-SHOW (Não compareceu)",
    "RECUPERAÇÃO (Nova tentativa)",
    "PROPOSTA ENVIADA",
    "DESISTIU DE SEGUIR",
    "CONTRATO ASSINADO",
    "PAGAMENTO CONFIRMADO",
]


class MissingDatePolicy(str, Enum):
    """
    What a card's missing creation/update timestamp means.
    ABSENT keeps it empty; NOW substitutes the fetch time, which inflates
    same-day lead and proposal counts for every card lacking the field.
    """

    ABSENT = "absent"
    NOW = "now"


class DirectoryEntry(BaseModel):
    """Configured team member."""

    name: str
    role: TeamRole = TeamRole.SELLER


def _default_commission_rates() -> dict[TeamRole, Decimal]:
    return {
        TeamRole.SDR: Decimal("0.03"),
        TeamRole.CLOSER: Decimal("0.05"),
        TeamRole.SDR_CLOSER: Decimal("0.08"),
        TeamRole.SELLER: Decimal("0.05"),
    }


class DashboardSettings(BaseModel):
    """Static lookup tables and source settings. Not mutated at runtime."""

    endpoint_url: str = DEFAULT_ENDPOINT_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    poll_interval_seconds: float = 300.0

    missing_date_policy: MissingDatePolicy = MissingDatePolicy.ABSENT
    discard_stale_refreshes: bool = Field(
        default=False,
        description="Drop refresh results older than the last applied one",
    )

    stage_order: list[str] = Field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))
    won_stage_markers: list[str] = Field(
        default_factory=lambda: ["contrato assinado", "pagamento confirmado"]
    )
    paid_stage_markers: list[str] = Field(default_factory=lambda: ["pagamento confirmado"])
    proposal_stage_markers: list[str] = Field(default_factory=lambda: ["proposta", "negocia"])

    user_directory: dict[str, DirectoryEntry] = Field(default_factory=dict)
    commission_rates: dict[TeamRole, Decimal] = Field(default_factory=_default_commission_rates)
    default_commission_rate: Decimal = Decimal("0.05")
    member_target: Decimal = Decimal("100000")

    goals: Goals = Field(default_factory=Goals)

    def commission_rate(self, role: TeamRole) -> Decimal:
        return self.commission_rates.get(role, self.default_commission_rate)

    def find_user_by_name(self, name: Optional[str]) -> Optional[tuple[str, DirectoryEntry]]:
        """Fuzzy lookup: normalized equality, or the configured name contained in `name`."""
        norm = normalize_text(name)
        if not norm:
            return None
        for user_id, entry in self.user_directory.items():
            configured = normalize_text(entry.name)
            if configured and (configured == norm or configured in norm):
                return user_id, entry
        return None

    def with_env_overrides(self) -> "DashboardSettings":
        """Apply CRM_DASHBOARD_* environment variables on top of these settings."""
        updates: dict = {}
        endpoint = os.environ.get("CRM_DASHBOARD_ENDPOINT")
        if endpoint:
            updates["endpoint_url"] = endpoint.strip()
        timeout = os.environ.get("CRM_DASHBOARD_TIMEOUT")
        if timeout:
            try:
                updates["timeout_seconds"] = float(timeout)
            except ValueError:
                raise ConfigError(f"Invalid CRM_DASHBOARD_TIMEOUT: {timeout!r}")
        missing = os.environ.get("CRM_DASHBOARD_MISSING_DATES")
        if missing:
            try:
                updates["missing_date_policy"] = MissingDatePolicy(missing.strip().lower())
            except ValueError:
                raise ConfigError(f"Invalid CRM_DASHBOARD_MISSING_DATES: {missing!r}")
        return self.model_copy(update=updates) if updates else self

    @classmethod
    def from_yaml(cls, path: str | Path) -> "DashboardSettings":
        """Load settings from YAML. Supports nested (source/pipeline/team/goals) or flat structure."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read settings: {e}", path=str(path)) from e
        if not isinstance(data, dict):
            raise ConfigError("Settings file must contain a mapping", path=str(path))

        source = data.get("source", {}) or {}
        pipeline = data.get("pipeline", {}) or {}
        team = data.get("team", {}) or {}

        def _get(key: str, nested: dict, top: dict, default=None):
            return nested.get(key, top.get(key, default))

        flat: dict = {}
        for key in ("endpoint_url", "timeout_seconds", "poll_interval_seconds", "discard_stale_refreshes"):
            value = _get(key, source, data)
            if value is not None:
                flat[key] = value
        for key in (
            "missing_date_policy",
            "stage_order",
            "won_stage_markers",
            "paid_stage_markers",
            "proposal_stage_markers",
        ):
            value = _get(key, pipeline, data)
            if value is not None:
                flat[key] = value
        directory = _get("users", team, data) or _get("user_directory", team, data)
        if directory:
            flat["user_directory"] = directory
        for key in ("commission_rates", "default_commission_rate", "member_target"):
            value = _get(key, team, data)
            if value is not None:
                flat[key] = value
        if data.get("goals"):
            flat["goals"] = data["goals"]

        try:
            return cls.model_validate(flat)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}", path=str(path)) from e
