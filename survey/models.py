"""
survey/models.py -- Domain dataclasses for questionnaires and answers.

Pure data containers. Ownership rules live in auth/guard.py; persistence and
concurrency checks live in survey/store.py.

user_id is the owner: the id of the user who created the record. It is set
once at creation and never changed by an update.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Questionnaire:
    """A set of questions published by one user.

    questions is free text. version is the optimistic-concurrency token: an
    update only applies if it still matches the stored value, and bumps it.
    """

    topic: str
    user_id: int
    questions: str = ""
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    version: int = 1


@dataclass
class Answer:
    questionnaire_id: int
    answer: str
    user_id: int
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1
