"""
api/routes/v1/answers.py -- Answer routes.

Routes:
  POST   /answers          -- answer a questionnaire (any user)
  GET    /answers          -- filtered, paginated list (?questionnaireId= optional)
  GET    /answers/{id}     -- detail
  PATCH  /answers/{id}     -- change the answer text (owner only)
  DELETE /answers/{id}     -- delete (owner only)

Same fetch-then-authorize rule as questionnaires.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from api.models import AnswerCreate, AnswerList, AnswerPatch, AnswerResponse, PageMetadata
from api.params import check_expected_version, expected_version, list_filters
from auth.dependencies import get_current_user
from auth.guard import require_ownership
from auth.models import User
from core.database import MAX_ID
from core.errors import NotFound
from core.filters import Filters, compute_metadata
from survey.models import Answer
from survey.store import ANSWER_SORT_FIELDS, SurveyStore

router = APIRouter(dependencies=[Depends(get_current_user)])


def _fetch(store: SurveyStore, answer_id: int) -> Answer:
    answer = store.get_answer(answer_id)
    if answer is None:
        raise NotFound("answer not found")
    return answer


@router.post("/answers", response_model=AnswerResponse, status_code=201)
def create_answer(
    request: Request,
    body: AnswerCreate,
    current_user: User = Depends(get_current_user),
) -> AnswerResponse:
    """Answer an existing questionnaire. 404 if the questionnaire does not exist."""
    store: SurveyStore = request.app.state.survey_store
    if store.get_questionnaire(body.questionnaire_id) is None:
        raise NotFound("questionnaire not found")
    answer = Answer(questionnaire_id=body.questionnaire_id, answer=body.answer, user_id=current_user.id)
    store.create_answer(answer)
    return AnswerResponse.from_answer(answer)


@router.get("/answers", response_model=AnswerList)
def list_answers(
    request: Request,
    questionnaire_id: Optional[int] = Query(default=None, alias="questionnaireId", ge=1, le=MAX_ID),
    filters: Filters = Depends(list_filters(ANSWER_SORT_FIELDS)),
) -> AnswerList:
    """List answers. Sortable by: id, createdAt, updatedAt, questionnaireId, userId."""
    store: SurveyStore = request.app.state.survey_store
    rows, total = store.list_answers(filters, questionnaire_id=questionnaire_id)
    return AnswerList(
        metadata=PageMetadata.from_metadata(compute_metadata(total, filters.page, filters.page_size)),
        answers=[AnswerResponse.from_answer(a) for a in rows],
    )


@router.get("/answers/{answer_id}", response_model=AnswerResponse)
def get_answer(request: Request, answer_id: int = Path(ge=1, le=MAX_ID)) -> AnswerResponse:
    store: SurveyStore = request.app.state.survey_store
    return AnswerResponse.from_answer(_fetch(store, answer_id))


@router.patch("/answers/{answer_id}", response_model=AnswerResponse)
def update_answer(
    request: Request,
    body: AnswerPatch,
    answer_id: int = Path(ge=1, le=MAX_ID),
    expected: Optional[str] = Depends(expected_version),
    current_user: User = Depends(get_current_user),
) -> AnswerResponse:
    store: SurveyStore = request.app.state.survey_store
    answer = _fetch(store, answer_id)
    require_ownership(answer, current_user.id)
    check_expected_version(expected, answer.version)

    answer.answer = body.answer
    store.update_answer(answer)
    return AnswerResponse.from_answer(answer)


@router.delete("/answers/{answer_id}", status_code=204)
def delete_answer(
    request: Request,
    answer_id: int = Path(ge=1, le=MAX_ID),
    current_user: User = Depends(get_current_user),
) -> Response:
    store: SurveyStore = request.app.state.survey_store
    answer = _fetch(store, answer_id)
    require_ownership(answer, current_user.id)
    store.delete_answer(answer.id)
    return Response(status_code=204)
