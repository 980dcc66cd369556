"""Field extraction, value normalization and attribution for raw CRM cards."""

from crm_dashboard.normalization.attribution import AdAttribution, resolve_attribution
from crm_dashboard.normalization.fields import find_field_value
from crm_dashboard.normalization.values import parse_date, parse_monetary

__all__ = [
    "AdAttribution",
    "find_field_value",
    "parse_date",
    "parse_monetary",
    "resolve_attribution",
]
