"""Operator endpoint models."""

from uuid import UUID

from pydantic import Field

from votegate.api.models.features import (
    CamelModel,
    FeatureResponse,
    FeatureStatusLiteral,
)


class ImplementResponse(CamelModel):
    """Response for POST /v1/features/{id}/implement.

    Attributes:
        claimed: True if this call moved the feature to implementing.
        dispatched: Whether the agent was started (null when not claimed).
        message: Human-readable summary.
        feature: Feature after the call.
    """

    feature_id: UUID
    claimed: bool
    dispatched: bool | None = None
    message: str
    feature: FeatureResponse | None = None


class CompleteRequest(CamelModel):
    """Optional body for POST /v1/features/{id}/complete."""

    external_ref: str | None = Field(default=None, max_length=2048)


class CompleteResponse(CamelModel):
    """Response for POST /v1/features/{id}/complete."""

    feature: FeatureResponse
    already_implemented: bool
    previous_status: FeatureStatusLiteral
