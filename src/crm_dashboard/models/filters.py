"""Date filter supplied by the presentation layer."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DatePreset(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    LAST_MONTH = "last_month"
    ALL = "all"
    CUSTOM = "custom"


class DateFilter(BaseModel):
    """
    Preset window or explicit start/end (YYYY-MM-DD).
    Explicit dates win over the preset, except for ALL.
    """

    preset: DatePreset = DatePreset.MONTH
    start_date: Optional[str] = None
    end_date: Optional[str] = None
