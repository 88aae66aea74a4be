"""
survey/store.py -- SQLAlchemy-backed persistence for questionnaires and answers.

Uses SQLAlchemy Core (not ORM) so the dataclasses in survey/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. SurveyStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Listing:
  Sort names arrive already checked against QUESTIONNAIRE_SORT_FIELDS /
  ANSWER_SORT_FIELDS (core.filters.build_filters) and are mapped to Column
  objects here. Every list query appends "id ASC" after the chosen column so
  rows with equal sort values keep the same order on every page.

Concurrency:
  version is the optimistic-concurrency token, as for users. update_* matches
  on both id and the version the caller read, then bumps it; zero matched rows
  -> EditConflict. updated_at is informational only.

Usage:
    store = SurveyStore("sqlite:///surveyor.db")
    qid = store.create_questionnaire(Questionnaire(topic="Sleep", user_id=1))
    page, total = store.list_questionnaires(filters, topic="sleep")
    store.close()
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from core.database import MAX_ID, make_engine, now_iso, store_errors
from core.errors import EditConflict, NotFound
from core.filters import Filters
from survey.models import Answer, Questionnaire

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_questionnaires = Table(
    "questionnaires",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("topic", String(100), nullable=False),
    Column("questions", Text, nullable=False, server_default=""),
    Column("user_id", Integer, nullable=False),
    Column("version", Integer, nullable=False, server_default="1"),
    Index("ix_questionnaires_topic", "topic"),
)

_answers = Table(
    "answers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("questionnaire_id", Integer, nullable=False),
    Column("answer", Text, nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("version", Integer, nullable=False, server_default="1"),
    Index("ix_answers_questionnaire", "questionnaire_id"),
)

_QUESTIONNAIRE_SORT_COLUMNS = {
    "id": _questionnaires.c.id,
    "createdAt": _questionnaires.c.created_at,
    "updatedAt": _questionnaires.c.updated_at,
    "topic": _questionnaires.c.topic,
    "userId": _questionnaires.c.user_id,
}
QUESTIONNAIRE_SORT_FIELDS = frozenset(_QUESTIONNAIRE_SORT_COLUMNS)

_ANSWER_SORT_COLUMNS = {
    "id": _answers.c.id,
    "createdAt": _answers.c.created_at,
    "updatedAt": _answers.c.updated_at,
    "questionnaireId": _answers.c.questionnaire_id,
    "userId": _answers.c.user_id,
}
ANSWER_SORT_FIELDS = frozenset(_ANSWER_SORT_COLUMNS)

_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"


def _ordered(query, table: Table, columns: dict, filters: Filters):
    """Apply the chosen sort, the id tie-break, and the page window."""
    column = columns[filters.sort_field]
    order = column.desc() if filters.descending else column.asc()
    return query.order_by(order, table.c.id.asc()).limit(filters.limit).offset(filters.offset)


class SurveyStore:
    """Repository for Questionnaire and Answer entities."""

    def __init__(self, db_url: str, timeout: float = 3.0, engine: Engine | None = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Questionnaires
    # ------------------------------------------------------------------

    def create_questionnaire(self, questionnaire: Questionnaire) -> int:
        """Insert a questionnaire, fill in id and timestamps, and return the id."""
        now = now_iso()
        with store_errors("questionnaires.insert"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _questionnaires.insert().values(
                        created_at=now,
                        updated_at=now,
                        topic=questionnaire.topic,
                        questions=questionnaire.questions,
                        user_id=questionnaire.user_id,
                        version=1,
                    )
                )
        questionnaire.id = result.inserted_primary_key[0]
        questionnaire.created_at = now
        questionnaire.updated_at = now
        questionnaire.version = 1
        return questionnaire.id

    def get_questionnaire(self, questionnaire_id: int) -> Optional[Questionnaire]:
        if not 1 <= questionnaire_id <= MAX_ID:
            return None
        with store_errors("questionnaires.get"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _questionnaires.select().where(_questionnaires.c.id == questionnaire_id)
                ).fetchone()
        return _row_to_questionnaire(row) if row is not None else None

    def update_questionnaire(self, questionnaire: Questionnaire) -> None:
        """Write topic and questions if version still matches the stored row.

        The owner column is never rewritten. questionnaire.version and
        updated_at are refreshed in place on success.
        """
        now = now_iso()
        with store_errors("questionnaires.update"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _questionnaires.update()
                    .where(
                        (_questionnaires.c.id == questionnaire.id)
                        & (_questionnaires.c.version == questionnaire.version)
                    )
                    .values(
                        topic=questionnaire.topic,
                        questions=questionnaire.questions,
                        updated_at=now,
                        version=_questionnaires.c.version + 1,
                    )
                )
        if result.rowcount == 0:
            raise EditConflict(_CONFLICT_MESSAGE)
        questionnaire.version += 1
        questionnaire.updated_at = now

    def delete_questionnaire(self, questionnaire_id: int) -> None:
        """Delete a questionnaire and every answer to it. NotFound if absent."""
        with store_errors("questionnaires.delete"):
            with self.engine.begin() as conn:
                result = conn.execute(_questionnaires.delete().where(_questionnaires.c.id == questionnaire_id))
                if result.rowcount:
                    conn.execute(_answers.delete().where(_answers.c.questionnaire_id == questionnaire_id))
        if result.rowcount == 0:
            raise NotFound("questionnaire not found")

    def list_questionnaires(self, filters: Filters, topic: str = "") -> tuple[list[Questionnaire], int]:
        """Return one page of questionnaires plus the total matching count.

        topic filters on case-insensitive equality; "" disables the filter.
        """
        query = _questionnaires.select()
        count = select(func.count()).select_from(_questionnaires)
        if topic:
            condition = func.lower(_questionnaires.c.topic) == topic.lower()
            query = query.where(condition)
            count = count.where(condition)
        query = _ordered(query, _questionnaires, _QUESTIONNAIRE_SORT_COLUMNS, filters)
        with store_errors("questionnaires.list"):
            with self.engine.connect() as conn:
                total = conn.execute(count).scalar() or 0
                rows = conn.execute(query).fetchall()
        return [_row_to_questionnaire(r) for r in rows], total

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def create_answer(self, answer: Answer) -> int:
        """Insert an answer. The caller checks the questionnaire exists first."""
        now = now_iso()
        with store_errors("answers.insert"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _answers.insert().values(
                        created_at=now,
                        updated_at=now,
                        questionnaire_id=answer.questionnaire_id,
                        answer=answer.answer,
                        user_id=answer.user_id,
                        version=1,
                    )
                )
        answer.id = result.inserted_primary_key[0]
        answer.created_at = now
        answer.updated_at = now
        answer.version = 1
        return answer.id

    def get_answer(self, answer_id: int) -> Optional[Answer]:
        if not 1 <= answer_id <= MAX_ID:
            return None
        with store_errors("answers.get"):
            with self.engine.connect() as conn:
                row = conn.execute(_answers.select().where(_answers.c.id == answer_id)).fetchone()
        return _row_to_answer(row) if row is not None else None

    def update_answer(self, answer: Answer) -> None:
        """Write the answer text if version still matches. Same rules as questionnaires."""
        now = now_iso()
        with store_errors("answers.update"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _answers.update()
                    .where((_answers.c.id == answer.id) & (_answers.c.version == answer.version))
                    .values(answer=answer.answer, updated_at=now, version=_answers.c.version + 1)
                )
        if result.rowcount == 0:
            raise EditConflict(_CONFLICT_MESSAGE)
        answer.version += 1
        answer.updated_at = now

    def delete_answer(self, answer_id: int) -> None:
        with store_errors("answers.delete"):
            with self.engine.begin() as conn:
                result = conn.execute(_answers.delete().where(_answers.c.id == answer_id))
        if result.rowcount == 0:
            raise NotFound("answer not found")

    def list_answers(self, filters: Filters, questionnaire_id: int | None = None) -> tuple[list[Answer], int]:
        """Return one page of answers, optionally for a single questionnaire."""
        query = _answers.select()
        count = select(func.count()).select_from(_answers)
        if questionnaire_id is not None:
            condition = _answers.c.questionnaire_id == questionnaire_id
            query = query.where(condition)
            count = count.where(condition)
        query = _ordered(query, _answers, _ANSWER_SORT_COLUMNS, filters)
        with store_errors("answers.list"):
            with self.engine.connect() as conn:
                total = conn.execute(count).scalar() or 0
                rows = conn.execute(query).fetchall()
        return [_row_to_answer(r) for r in rows], total

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_questionnaire(row) -> Questionnaire:
    return Questionnaire(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        topic=row.topic,
        questions=row.questions or "",
        user_id=row.user_id,
        version=row.version,
    )


def _row_to_answer(row) -> Answer:
    return Answer(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        questionnaire_id=row.questionnaire_id,
        answer=row.answer,
        user_id=row.user_id,
        version=row.version,
    )
