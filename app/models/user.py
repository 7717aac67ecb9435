from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Company = Literal["AIA", "Vega"]


@dataclass(frozen=True, slots=True)
class Department:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class User:
    """Portal employee account, as owned by the CMS users table."""

    id: int
    email: str
    username: str = ""
    employee_name: str = ""
    company: str | None = None  # AIA|Vega
    department_id: int | None = None
    blocked: bool = False
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return self.employee_name or self.username or self.email or f"User {self.id}"
