"""Company-portal content the overall dashboard counts.

None of these have relations the aggregation needs beyond a single
grouping label, so the label is stored flat on each record.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Holiday:
    id: int
    name: str
    date: datetime.date | None = None
    published_at: datetime.datetime | None = None
    company: str | None = None


@dataclass(frozen=True, slots=True)
class NewsItem:
    id: int
    title: str
    category_name: str | None = None
    published_at: datetime.datetime | None = None
    company: str | None = None


@dataclass(frozen=True, slots=True)
class Event:
    id: int
    title: str
    event_type: str | None = None
    published_at: datetime.datetime | None = None
    company: str | None = None


@dataclass(frozen=True, slots=True)
class Townhall:
    id: int
    title: str
    meeting_content_type: str | None = None  # Video|Pdf
    published_at: datetime.datetime | None = None
