"""Parsing utilities for webhook payloads: shape detection and canonical card building."""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from crm_dashboard.errors import PayloadError
from crm_dashboard.matching import normalize_text
from crm_dashboard.models.card import CardBatch, ContactRef, CrmCard, TagCatalog, TagRef, tag_color
from crm_dashboard.models.raw import RawCard, RawPayload
from crm_dashboard.models.settings import MissingDatePolicy
from crm_dashboard.normalization.values import parse_date, parse_monetary

logger = logging.getLogger(__name__)

MONETARY_KEYS = ("monetaryAmount", "monetary_amount", "value")


def parse_response_text(text: str) -> Optional[RawPayload]:
    """
    Parse a response body. Empty body -> None (nothing new to show).
    Raises PayloadError when the body is not JSON.
    """
    if not text or not text.strip():
        return None
    try:
        raw_json = json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadError(f"Could not parse response as JSON: {e.msg}") from e
    return extract_payload(raw_json)


def extract_payload(raw_json: Any) -> RawPayload:
    """
    Detect the payload shape:
    - bare array of cards
    - {"data": [...], "steps": [...]?, "tags": [...]?}
    - {"json": <either of the above>}
    """
    if isinstance(raw_json, list):
        return RawPayload(cards=_raw_cards(raw_json))
    if isinstance(raw_json, dict):
        if isinstance(raw_json.get("data"), list):
            steps = raw_json.get("steps")
            tags = raw_json.get("tags")
            return RawPayload(
                cards=_raw_cards(raw_json["data"]),
                steps=[s for s in steps if isinstance(s, dict)] if isinstance(steps, list) else [],
                tags=[t for t in tags if isinstance(t, dict)] if isinstance(tags, list) else [],
            )
        if "json" in raw_json:
            return extract_payload(raw_json["json"])
    logger.warning("Unrecognized payload shape (%s); treating as empty", type(raw_json).__name__)
    return RawPayload()


def _raw_cards(items: list) -> list[RawCard]:
    return [RawCard(data=item) for item in items if isinstance(item, dict)]


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _split_custom_fields(value: Any) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """customFields may be an object or an array of {name, value} items."""
    if isinstance(value, dict):
        return value, []
    if isinstance(value, list):
        return {}, [f for f in value if isinstance(f, dict)]
    return {}, []


def resolve_contact(data: dict) -> Optional[ContactRef]:
    """First of contactDetails, contacts[0], contact."""
    raw = None
    if isinstance(data.get("contactDetails"), dict):
        raw = data["contactDetails"]
    elif isinstance(data.get("contacts"), list) and data["contacts"]:
        raw = data["contacts"][0]
    elif isinstance(data.get("contact"), dict):
        raw = data["contact"]
    if not isinstance(raw, dict):
        return None
    custom_fields, custom_field_list = _split_custom_fields(raw.get("customFields"))
    utm = raw.get("utm")
    return ContactRef(
        name=_text(raw.get("name")),
        custom_fields=custom_fields,
        custom_field_list=custom_field_list,
        utm=utm if isinstance(utm, dict) else {},
    )


def resolve_tags(data: dict, catalog: TagCatalog) -> list[TagRef]:
    """
    Resolve tags from tags_data, else tags_names, else tags; tagIds are added on top.
    Bare references are looked up in the catalog and kept verbatim when unknown.
    """
    refs: list[TagRef] = []

    def from_reference(ref: Any) -> Optional[TagRef]:
        known = catalog.get_by_id(ref)
        if known is not None:
            return known
        name = _text(ref)
        return TagRef(name=name) if name else None

    tags_data = data.get("tags_data")
    tags_names = data.get("tags_names")
    tags = data.get("tags")
    if isinstance(tags_data, list):
        for t in tags_data:
            if isinstance(t, dict) and t.get("name"):
                refs.append(TagRef(name=str(t["name"]), color=tag_color(t.get("color"))))
    elif isinstance(tags_names, str) and tags_names:
        refs.extend(TagRef(name=n.strip()) for n in tags_names.split(",") if n.strip())
    elif isinstance(tags, list):
        for t in tags:
            if isinstance(t, dict):
                known = catalog.get_by_id(t.get("id"))
                name = _text(t.get("name")) or (known.name if known else None)
                if name:
                    color = tag_color(t.get("bgColor"), t.get("color"), known.color if known else None)
                    refs.append(TagRef(name=name, color=color))
            else:
                ref = from_reference(t)
                if ref is not None:
                    refs.append(ref)

    tag_ids = data.get("tagIds") or data.get("tag_ids")
    if isinstance(tag_ids, list):
        for tag_id in tag_ids:
            ref = from_reference(tag_id)
            if ref is not None:
                refs.append(ref)

    unique: list[TagRef] = []
    seen: set[str] = set()
    for ref in refs:
        key = normalize_text(ref.name)
        if key and key not in seen:
            seen.add(key)
            unique.append(ref)
    return unique


def _monetary_amount(data: dict) -> Any:
    """First monetary variant that parses to a non-zero amount, else the first present one."""
    present = [data[k] for k in MONETARY_KEYS if data.get(k) is not None]
    for value in present:
        if parse_monetary(value) != 0:
            return value
    return present[0] if present else None


def _card_id(data: dict, index: int) -> str:
    return _text(_first_present(data, "id", "_id", "cardId")) or f"card-{index + 1}"


def normalize_card(
    raw: RawCard,
    catalog: TagCatalog,
    *,
    index: int = 0,
    missing_dates: MissingDatePolicy = MissingDatePolicy.ABSENT,
    now: Optional[datetime] = None,
) -> CrmCard:
    """Convert one raw record into the canonical CrmCard."""
    d = raw.data
    card_id = _card_id(d, index)

    created_at = parse_date(_first_present(d, "createdAt", "created_at"))
    updated_at = parse_date(_first_present(d, "updatedAt", "updated_at"))
    if missing_dates == MissingDatePolicy.NOW:
        fallback = now or datetime.now()
        created_at = created_at or fallback
        updated_at = updated_at or fallback

    responsible = d.get("responsibleUser") if isinstance(d.get("responsibleUser"), dict) else {}
    custom_fields, custom_field_list = _split_custom_fields(d.get("customFields"))

    return CrmCard(
        id=card_id,
        title=_text(_first_present(d, "title", "name")),
        monetary_amount=_monetary_amount(d),
        created_at=created_at,
        updated_at=updated_at,
        responsible_user_id=_text(d.get("responsibleUserId")) or _text(responsible.get("id")),
        responsible_user_name=_text(responsible.get("name")) or _text(d.get("responsibleUserName")),
        stage_id=_text(_first_present(d, "stepId", "stageId")),
        stage_name=_text(_first_present(d, "stepName", "stageName")),
        tags=resolve_tags(d, catalog),
        contact=resolve_contact(d),
        custom_fields=custom_fields,
        custom_field_list=custom_field_list,
        position=_int(d.get("position")),
        attributes=d,
    )


def normalize_payload(
    payload: RawPayload,
    *,
    missing_dates: MissingDatePolicy = MissingDatePolicy.ABSENT,
    now: Optional[datetime] = None,
) -> CardBatch:
    """Build the tag catalog for this fetch and resolve every card against it."""
    catalog = TagCatalog.from_tags(payload.tags)
    fetched_at = now or datetime.now()
    cards: list[CrmCard] = []
    for i, raw in enumerate(payload.cards):
        try:
            card = normalize_card(raw, catalog, index=i, missing_dates=missing_dates, now=fetched_at)
        except ValidationError as e:
            # Keep the record so stage totals still account for it
            card_id = _card_id(raw.data, i)
            logger.warning("Card %s could not be normalized (%d errors); keeping it bare", card_id, e.error_count())
            card = CrmCard(id=card_id, attributes=raw.data)
        cards.append(card)
    logger.debug("Normalized %d cards, %d steps, %d tags", len(cards), len(payload.steps), len(payload.tags))
    return CardBatch(cards=cards, steps=payload.steps, catalog=catalog)
