"""
API request and response models for Surveyor REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
survey/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: JSON field names are camelCase (alias_generator=to_camel).
populate_by_name=True also accepts snake_case on input.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from core.database import MAX_ID
from core.filters import Metadata
from survey.models import Answer, Questionnaire

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = (
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

PASSWORD_MIN_BYTES = 8
PASSWORD_MAX_BYTES = 72  # bcrypt input limit


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class _Response(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _check_password_bytes(value: str) -> str:
    size = len(value.encode("utf-8"))
    if size < PASSWORD_MIN_BYTES:
        raise ValueError(f"must be at least {PASSWORD_MIN_BYTES} bytes long")
    if size > PASSWORD_MAX_BYTES:
        raise ValueError(f"must not be more than {PASSWORD_MAX_BYTES} bytes long")
    return value


# ---------------------------------------------------------------------------
# Users -- requests
# ---------------------------------------------------------------------------


class UserRegister(_Request):
    """Request body for POST /api/v1/users/register."""

    # Whitespace is significant in passwords, so no stripping on this model.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1, max_length=500)
    surname: str = Field(default="", max_length=500)
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(json_schema_extra={"format": "password"})

    @field_validator("password", mode="before")
    @classmethod
    def password_bytes(cls, value: Any) -> Any:
        return _check_password_bytes(value) if isinstance(value, str) else value


class ActivateRequest(_Request):
    """Request body for PUT /api/v1/users/activated."""

    token: str


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login."""

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Users -- responses
# ---------------------------------------------------------------------------


class UserResponse(_Response):
    id: int
    created_at: str
    updated_at: str
    name: str
    surname: str
    username: str
    email: str
    activated: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view of a User. The password never leaves the domain object."""
        return cls(
            id=user.id,
            created_at=user.created_at,
            updated_at=user.updated_at,
            name=user.name,
            surname=user.surname,
            username=user.username,
            email=user.email,
            activated=user.activated,
        )


class TokenResponse(_Response):
    """A freshly issued token. This is the only time the plaintext is sent."""

    token: str
    expiry: str


class RegisterResponse(_Response):
    user: UserResponse
    activation_token: TokenResponse


# ---------------------------------------------------------------------------
# Questionnaires
# ---------------------------------------------------------------------------


class QuestionnaireCreate(_Request):
    """Request body for POST /api/v1/questionnaires."""

    topic: str = Field(min_length=1, max_length=100)
    questions: str = Field(default="", max_length=1000)


class QuestionnairePatch(_Request):
    """Request body for PATCH /api/v1/questionnaires/{id}. Omitted fields are unchanged."""

    topic: Optional[str] = Field(default=None, min_length=1, max_length=100)
    questions: Optional[str] = Field(default=None, max_length=1000)


class QuestionnaireResponse(_Response):
    id: int
    created_at: str
    updated_at: str
    topic: str
    questions: str
    user_id: int
    version: int

    @classmethod
    def from_questionnaire(cls, q: Questionnaire) -> "QuestionnaireResponse":
        return cls(
            id=q.id,
            created_at=q.created_at,
            updated_at=q.updated_at,
            topic=q.topic,
            questions=q.questions,
            user_id=q.user_id,
            version=q.version,
        )


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class AnswerCreate(_Request):
    """Request body for POST /api/v1/answers."""

    questionnaire_id: int = Field(ge=1, le=MAX_ID)
    answer: str = Field(min_length=1, max_length=1000)


class AnswerPatch(_Request):
    answer: str = Field(min_length=1, max_length=1000)


class AnswerResponse(_Response):
    id: int
    created_at: str
    updated_at: str
    questionnaire_id: int
    answer: str
    user_id: int
    version: int

    @classmethod
    def from_answer(cls, a: Answer) -> "AnswerResponse":
        return cls(
            id=a.id,
            created_at=a.created_at,
            updated_at=a.updated_at,
            questionnaire_id=a.questionnaire_id,
            answer=a.answer,
            user_id=a.user_id,
            version=a.version,
        )


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class PageMetadata(_Response):
    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int

    @classmethod
    def from_metadata(cls, m: Metadata) -> "PageMetadata":
        return cls(
            current_page=m.current_page,
            page_size=m.page_size,
            first_page=m.first_page,
            last_page=m.last_page,
            total_records=m.total_records,
        )


class QuestionnaireList(_Response):
    metadata: PageMetadata
    questionnaires: list[QuestionnaireResponse]


class AnswerList(_Response):
    metadata: PageMetadata
    answers: list[AnswerResponse]


class UserList(_Response):
    metadata: PageMetadata
    users: list[UserResponse]


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload. detail maps field -> problem for 400s."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Union[dict[str, Any], str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    environment: str
    components: dict[str, str]
