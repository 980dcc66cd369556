"""Raw webhook payload representation before normalization."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RawCard(BaseModel):
    """
    Flexible raw record from the CRM export.
    No key is guaranteed; the same logical value may appear under several names.
    """

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] = Field(default_factory=dict)


class RawPayload(BaseModel):
    """Cards plus the optional stage definitions and tag catalog shipped alongside them."""

    cards: list[RawCard] = Field(default_factory=list)
    steps: list[dict[str, Any]] = Field(default_factory=list)
    tags: list[dict[str, Any]] = Field(default_factory=list)
