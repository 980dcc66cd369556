"""Canonical card model and tag catalog used by every downstream component."""

from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from crm_dashboard.matching import normalize_text


def tag_color(*values: Any) -> Optional[str]:
    """First non-empty string among the candidate color fields; anything else is ignored."""
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class TagRef(BaseModel):
    """Tag attached to a card."""

    name: str
    color: Optional[str] = None


class ContactRef(BaseModel):
    """Contact linked to a card (first of contactDetails / contacts / contact)."""

    name: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    custom_field_list: list[dict[str, Any]] = Field(default_factory=list)
    utm: dict[str, Any] = Field(default_factory=dict)


class CrmCard(BaseModel):
    """
    One CRM opportunity, resolved once at ingestion.
    `attributes` keeps the raw record so field lookups can still see every naming variant.
    """

    id: str
    title: Optional[str] = None
    monetary_amount: Any = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    responsible_user_id: Optional[str] = None
    responsible_user_name: Optional[str] = None

    stage_id: Optional[str] = None
    stage_name: Optional[str] = None

    tags: list[TagRef] = Field(default_factory=list)
    contact: Optional[ContactRef] = None

    custom_fields: dict[str, Any] = Field(default_factory=dict)
    custom_field_list: list[dict[str, Any]] = Field(default_factory=list)

    position: int = 0
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        if self.contact and self.contact.name:
            return self.contact.name
        return "Untitled"


class TagCatalog(BaseModel):
    """Tag id and normalized tag name -> tag. Rebuilt on every fetch."""

    by_id: dict[str, TagRef] = Field(default_factory=dict)
    by_name: dict[str, TagRef] = Field(default_factory=dict)

    @classmethod
    def from_tags(cls, tags: Iterable[dict[str, Any]]) -> "TagCatalog":
        catalog = cls()
        for tag in tags or []:
            if not isinstance(tag, dict):
                continue
            name = tag.get("name")
            ref = TagRef(
                name=str(name) if name else str(tag.get("id", "")),
                color=tag_color(tag.get("bgColor"), tag.get("color")),
            )
            if tag.get("id") is not None:
                catalog.by_id[str(tag["id"])] = ref
            if name:
                catalog.by_name[normalize_text(name)] = ref
        return catalog

    def get_by_id(self, tag_id: Any) -> Optional[TagRef]:
        if tag_id is None:
            return None
        return self.by_id.get(str(tag_id))

    def color_for(self, name: str) -> Optional[str]:
        """Catalog color for a tag name, if the catalog knows it."""
        ref = self.by_name.get(normalize_text(name))
        return ref.color if ref else None


class CardBatch(BaseModel):
    """Normalized result of one fetch."""

    cards: list[CrmCard] = Field(default_factory=list)
    steps: list[dict[str, Any]] = Field(default_factory=list)
    catalog: TagCatalog = Field(default_factory=TagCatalog)
