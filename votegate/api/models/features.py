"""Feature board API request/response models.

Fields are snake_case in Python and camelCase on the wire
(``voteTotal``, ``hasVoted``, ``parentId``). Requests accept either form.
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from votegate.application.services.feature_board_service import BoardView, FeatureView
from votegate.domain.models.feature import TITLE_MAX_LENGTH

DESCRIPTION_MAX_LENGTH = 10_000

# ISO 8601 with Z suffix
DateTimeWithZ = Annotated[
    datetime,
    PlainSerializer(
        lambda v: v.isoformat().replace("+00:00", "Z") if v else None, return_type=str
    ),
]

FeatureStatusLiteral = Literal["pending", "implementing", "implemented"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateFeatureRequest(CamelModel):
    """Request body for POST /v1/features.

    Attributes:
        title: Short title (1..200 characters).
        description: What the feature should do.
        parent_id: Feature this is a variation of.
        captcha_token: hCaptcha response token, required when CAPTCHA is on.
    """

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    parent_id: UUID | None = None
    captcha_token: str | None = Field(default=None, max_length=4096)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class FeatureResponse(CamelModel):
    """A feature as shown on the board."""

    id: UUID
    title: str
    description: str
    status: FeatureStatusLiteral
    creator_id: str
    parent_id: UUID | None = None
    vote_total: int
    user_has_voted: bool = False
    variation_count: int = 0
    created_at: DateTimeWithZ
    implementation_started_at: DateTimeWithZ | None = None
    implemented_at: DateTimeWithZ | None = None
    external_ref: str | None = None

    @classmethod
    def from_view(cls, view: FeatureView) -> "FeatureResponse":
        feature = view.feature
        return cls(
            id=feature.id,
            title=feature.title,
            description=feature.description,
            status=feature.status.value,
            creator_id=feature.creator_id,
            parent_id=feature.parent_id,
            vote_total=view.vote_total,
            user_has_voted=view.user_has_voted,
            variation_count=view.variation_count,
            created_at=feature.created_at,
            implementation_started_at=feature.implementation_started_at,
            implemented_at=feature.implemented_at,
            external_ref=feature.external_ref,
        )


class BoardResponse(CamelModel):
    """Response for GET /v1/features.

    Attributes:
        features: Pending and implementing features, most votes first.
        implemented_features: Implemented features, most recent first.
        can_submit: Whether the caller may submit now (null if anonymous).
        threshold: Votes needed to trigger implementation.
    """

    features: list[FeatureResponse]
    implemented_features: list[FeatureResponse]
    can_submit: bool | None = None
    threshold: int

    @classmethod
    def from_board(cls, board: BoardView, threshold: int) -> "BoardResponse":
        return cls(
            features=[FeatureResponse.from_view(v) for v in board.features],
            implemented_features=[
                FeatureResponse.from_view(v) for v in board.implemented_features
            ],
            can_submit=board.can_submit,
            threshold=threshold,
        )


class CreateFeatureResponse(CamelModel):
    """Response for POST /v1/features."""

    feature: FeatureResponse
    has_voted: bool
    vote_total: int
    implementing: bool = False


class VoteResponse(CamelModel):
    """Response for POST /v1/features/{id}/vote.

    ``action`` always reports the caller's own vote. When the feature left
    voting during the request ``implementing`` is true, ``voteTotal`` is the
    frozen snapshot and ``dispatched`` tells whether the implementation agent
    was started (null when another request won the claim).
    """

    action: Literal["added", "removed"]
    has_voted: bool
    vote_total: int
    implementing: bool = False
    dispatched: bool | None = None
    message: str | None = None
