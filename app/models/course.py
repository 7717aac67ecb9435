from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CourseCategory:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class Course:
    id: int
    title: str
    category_id: int | None = None
