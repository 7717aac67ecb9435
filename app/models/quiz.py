from __future__ import annotations

import datetime
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class QuizSubmission:
    id: int
    user_id: int  # submitted_by
    quiz_id: int
    score: int = 0
    passed: bool = False
    attempt_number: int = 1
    submitted_at: datetime.datetime | None = None
