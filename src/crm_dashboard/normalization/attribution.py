"""Traffic source and marketing creative attribution from UTM-like fields."""

from typing import Any, Mapping, Optional

from pydantic import BaseModel

from crm_dashboard.matching import normalize_text
from crm_dashboard.models.card import CrmCard

DEFAULT_SOURCE = "Organic"

_IGNORED_VALUES = frozenset({"api", "undefined", "null"})
_SOURCE_KEY_FRAGMENTS = ("utm_source", "origem")
_CREATIVE_KEY_FRAGMENTS = ("ad_name", "adname", "campaign", "campanha", "utm_campaign", "criativo")
_URL_KEY_FRAGMENTS = ("url", "link")


class AdAttribution(BaseModel):
    """Resolved creative, channel and landing URL for one card."""

    name: Optional[str] = None
    source: str = DEFAULT_SOURCE
    url: Optional[str] = None


def _collect(obj: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Scalar (non-empty, non-container) fields as (normalized key, text) pairs."""
    pairs = []
    for key, value in obj.items():
        if not value or isinstance(value, (dict, list, tuple)):
            continue
        pairs.append((normalize_text(f"{prefix}{key}"), str(value)))
    return pairs


def _more_specific(candidate: str, current: Optional[str]) -> bool:
    return len(candidate) > len(current or "") and "unknown" not in candidate.lower()


def resolve_attribution(card: CrmCard) -> AdAttribution:
    """
    Best-effort attribution. When several fields compete, the longest value
    that does not mention 'unknown' wins as the most specific.
    """
    candidates = _collect(card.attributes)
    candidates.extend(_collect(card.custom_fields))
    if card.contact is not None and card.contact.utm:
        candidates.extend(_collect(card.contact.utm, prefix="utm_"))

    result = AdAttribution()
    for key, value in candidates:
        if value.strip().lower() in _IGNORED_VALUES:
            continue

        if any(f in key for f in _SOURCE_KEY_FRAGMENTS) or key == "source":
            if result.source == DEFAULT_SOURCE or _more_specific(value, result.source):
                result.source = value

        if any(f in key for f in _CREATIVE_KEY_FRAGMENTS):
            if not result.name or _more_specific(value, result.name):
                result.name = value

        if any(f in key for f in _URL_KEY_FRAGMENTS) and value.startswith("http"):
            result.url = value
    return result
