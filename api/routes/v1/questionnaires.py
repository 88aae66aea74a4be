"""
api/routes/v1/questionnaires.py -- Questionnaire routes.

Routes:
  POST   /questionnaires                     -- create (activated user)
  GET    /questionnaires                     -- filtered, paginated list
  GET    /questionnaires/{id}                -- detail
  PATCH  /questionnaires/{id}                -- partial update (owner only)
  DELETE /questionnaires/{id}                -- delete with its answers (owner only)
  GET    /questionnaires/{id}/answers        -- answers to one questionnaire

Mutations always fetch first and authorize second, so an unknown id is a 404
for everyone and a 403 only ever means "exists, but not yours".
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from api.models import (
    AnswerList,
    AnswerResponse,
    PageMetadata,
    QuestionnaireCreate,
    QuestionnaireList,
    QuestionnairePatch,
    QuestionnaireResponse,
)
from api.params import check_expected_version, expected_version, list_filters
from auth.dependencies import get_current_user
from auth.guard import require_ownership
from auth.models import User
from core.database import MAX_ID
from core.errors import NotFound
from core.filters import Filters, compute_metadata
from survey.models import Questionnaire
from survey.store import ANSWER_SORT_FIELDS, QUESTIONNAIRE_SORT_FIELDS, SurveyStore

# Every route here requires authentication. Router-level dependency applies
# to every route registered on this router.
router = APIRouter(dependencies=[Depends(get_current_user)])


def _fetch(store: SurveyStore, questionnaire_id: int) -> Questionnaire:
    questionnaire = store.get_questionnaire(questionnaire_id)
    if questionnaire is None:
        raise NotFound("questionnaire not found")
    return questionnaire


@router.post("/questionnaires", response_model=QuestionnaireResponse, status_code=201)
def create_questionnaire(
    request: Request,
    body: QuestionnaireCreate,
    current_user: User = Depends(get_current_user),
) -> QuestionnaireResponse:
    """Create a questionnaire owned by the current user."""
    store: SurveyStore = request.app.state.survey_store
    questionnaire = Questionnaire(topic=body.topic, questions=body.questions, user_id=current_user.id)
    store.create_questionnaire(questionnaire)
    return QuestionnaireResponse.from_questionnaire(questionnaire)


@router.get("/questionnaires", response_model=QuestionnaireList)
def list_questionnaires(
    request: Request,
    topic: str = Query(default="", max_length=100),
    filters: Filters = Depends(list_filters(QUESTIONNAIRE_SORT_FIELDS)),
) -> QuestionnaireList:
    """List questionnaires.

    Query params:
      topic    -- case-insensitive exact match; omitted = all topics
      sort     -- id | createdAt | updatedAt | topic | userId, "-" prefix for descending
      page     -- 1-based page number
      pageSize -- capped at MAX_PAGE_SIZE
    """
    store: SurveyStore = request.app.state.survey_store
    rows, total = store.list_questionnaires(filters, topic=topic)
    return QuestionnaireList(
        metadata=PageMetadata.from_metadata(compute_metadata(total, filters.page, filters.page_size)),
        questionnaires=[QuestionnaireResponse.from_questionnaire(q) for q in rows],
    )


@router.get("/questionnaires/{questionnaire_id}", response_model=QuestionnaireResponse)
def get_questionnaire(request: Request, questionnaire_id: int = Path(ge=1, le=MAX_ID)) -> QuestionnaireResponse:
    store: SurveyStore = request.app.state.survey_store
    return QuestionnaireResponse.from_questionnaire(_fetch(store, questionnaire_id))


@router.patch("/questionnaires/{questionnaire_id}", response_model=QuestionnaireResponse)
def update_questionnaire(
    request: Request,
    body: QuestionnairePatch,
    questionnaire_id: int = Path(ge=1, le=MAX_ID),
    expected: Optional[str] = Depends(expected_version),
    current_user: User = Depends(get_current_user),
) -> QuestionnaireResponse:
    """Update topic and/or questions. Owner only.

    X-Expected-Version (optional): the version value the client last read.
    A stale value, or a concurrent write between fetch and update, gives 409.
    """
    store: SurveyStore = request.app.state.survey_store
    questionnaire = _fetch(store, questionnaire_id)
    require_ownership(questionnaire, current_user.id)
    check_expected_version(expected, questionnaire.version)

    if body.topic is not None:
        questionnaire.topic = body.topic
    if body.questions is not None:
        questionnaire.questions = body.questions
    store.update_questionnaire(questionnaire)
    return QuestionnaireResponse.from_questionnaire(questionnaire)


@router.delete("/questionnaires/{questionnaire_id}", status_code=204)
def delete_questionnaire(
    request: Request,
    questionnaire_id: int = Path(ge=1, le=MAX_ID),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete a questionnaire and all its answers. Owner only."""
    store: SurveyStore = request.app.state.survey_store
    questionnaire = _fetch(store, questionnaire_id)
    require_ownership(questionnaire, current_user.id)
    store.delete_questionnaire(questionnaire.id)
    return Response(status_code=204)


@router.get("/questionnaires/{questionnaire_id}/answers", response_model=AnswerList)
def list_questionnaire_answers(
    request: Request,
    questionnaire_id: int = Path(ge=1, le=MAX_ID),
    filters: Filters = Depends(list_filters(ANSWER_SORT_FIELDS)),
) -> AnswerList:
    store: SurveyStore = request.app.state.survey_store
    _fetch(store, questionnaire_id)
    rows, total = store.list_answers(filters, questionnaire_id=questionnaire_id)
    return AnswerList(
        metadata=PageMetadata.from_metadata(compute_metadata(total, filters.page, filters.page_size)),
        answers=[AnswerResponse.from_answer(a) for a in rows],
    )
