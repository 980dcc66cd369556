"""Locate a logical value among the naming variants of a card's fields."""

from typing import Any, Iterable, Mapping, Optional, Sequence

from crm_dashboard.matching import clean_key, clean_separators, normalize_text
from crm_dashboard.models.card import CrmCard

# Substring matching only for terms longer than this, to avoid short-token collisions
MIN_SUBSTRING_TERM = 3


def _prepare_terms(terms: Sequence[str]) -> list[tuple[str, str]]:
    prepared = []
    for term in terms:
        normalized = normalize_text(term)
        if normalized:
            prepared.append((normalized, clean_separators(normalized)))
    return prepared


def _keyed_match(normalized_key: str, term: str, cleaned_term: str) -> bool:
    if normalized_key == term:
        return True
    cleaned = clean_key(normalized_key)
    if cleaned == cleaned_term:
        return True
    return len(term) > MIN_SUBSTRING_TERM and cleaned_term in cleaned


def _array_candidates(fields: Iterable[Any]) -> list[tuple[str, Any]]:
    """[{name|key|id, value|text}] -> [(normalized key, value)]."""
    candidates = []
    for item in fields or []:
        if not isinstance(item, Mapping):
            continue
        key = item.get("name") or item.get("key") or item.get("id") or ""
        value = item.get("value") or item.get("text")
        if key and value is not None:
            candidates.append((normalize_text(key), value))
    return candidates


def find_field_value(card: CrmCard, terms: Sequence[str]) -> Optional[Any]:
    """
    Return the first raw value whose field name matches one of `terms`, or None.

    Object-keyed sources are scanned in order: the record itself, its custom
    fields, its contact's custom fields. Within a source, keys are visited in
    order and each key is tested against every term by exact normalized match,
    cleaned match, then substring containment. Array-shaped custom fields are
    only consulted when no keyed source matched.
    """
    prepared = _prepare_terms(terms)
    if not prepared:
        return None

    sources: list[Mapping[str, Any]] = [card.attributes, card.custom_fields]
    if card.contact is not None:
        sources.append(card.contact.custom_fields)

    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            if value is None:
                continue
            normalized_key = normalize_text(key)
            for term, cleaned_term in prepared:
                if _keyed_match(normalized_key, term, cleaned_term):
                    return value

    candidates = _array_candidates(card.custom_field_list)
    if card.contact is not None:
        candidates.extend(_array_candidates(card.contact.custom_field_list))
    for term, cleaned_term in prepared:
        for normalized_key, value in candidates:
            cleaned = clean_key(normalized_key)
            if cleaned == cleaned_term or (
                len(term) > MIN_SUBSTRING_TERM and cleaned_term in cleaned
            ):
                return value
    return None
