"""Operator routes: manual implementation trigger and force-complete.

Both require the operator bearer token. They go through the same
lifecycle service as the vote-triggered path.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request

from votegate.api.auth.operator_auth import OperatorActor, require_operator
from votegate.api.dependencies.pipeline import get_lifecycle_service
from votegate.api.models.errors import ErrorResponse, problem_exception
from votegate.api.models.features import FeatureResponse
from votegate.api.models.operator import (
    CompleteRequest,
    CompleteResponse,
    ImplementResponse,
)
from votegate.application.services.feature_board_service import FeatureView
from votegate.application.services.implementation_lifecycle_service import (
    ImplementationLifecycleService,
)
from votegate.domain.exceptions import VotegateError
from votegate.domain.models.feature import Feature

router = APIRouter(prefix="/v1/features", tags=["operator"])

_OPERATOR_ERRORS = {
    401: {"model": ErrorResponse, "description": "Operator token missing"},
    403: {"model": ErrorResponse, "description": "Operator token rejected"},
    404: {"model": ErrorResponse, "description": "Feature not found"},
}


def _feature_response(feature: Feature) -> FeatureResponse:
    return FeatureResponse.from_view(
        FeatureView(feature=feature, vote_total=feature.displayed_vote_total(0))
    )


@router.post(
    "/{feature_id}/implement",
    response_model=ImplementResponse,
    responses={
        **_OPERATOR_ERRORS,
        409: {"model": ErrorResponse, "description": "Feature already implemented"},
    },
    summary="Start implementation regardless of votes",
)
async def implement_feature(
    feature_id: UUID,
    request: Request,
    operator: Annotated[OperatorActor, Depends(require_operator)],
    lifecycle: Annotated[
        ImplementationLifecycleService, Depends(get_lifecycle_service)
    ],
) -> ImplementResponse:
    """Claim a pending feature and dispatch it.

    A feature that is already implementing is reported with
    ``claimed: false`` and is not dispatched again.
    """
    try:
        result = await lifecycle.trigger_manual_implementation(
            feature_id=feature_id,
            operator_id=operator.operator_id,
        )
    except VotegateError as e:
        raise problem_exception(e, request) from None

    if result.dispatch is not None:
        message = result.dispatch.message
    else:
        message = "Feature is already being implemented."

    feature = result.claim.feature
    return ImplementResponse(
        feature_id=feature_id,
        claimed=result.claimed,
        dispatched=result.dispatched,
        message=message,
        feature=_feature_response(feature) if feature is not None else None,
    )


@router.post(
    "/{feature_id}/complete",
    response_model=CompleteResponse,
    responses=_OPERATOR_ERRORS,
    summary="Mark a feature implemented",
)
async def complete_feature(
    feature_id: UUID,
    request: Request,
    operator: Annotated[OperatorActor, Depends(require_operator)],
    lifecycle: Annotated[
        ImplementationLifecycleService, Depends(get_lifecycle_service)
    ],
    request_data: Annotated[CompleteRequest | None, Body()] = None,
) -> CompleteResponse:
    """Force a feature to implemented. Idempotent."""
    try:
        result = await lifecycle.force_complete(
            feature_id=feature_id,
            operator_id=operator.operator_id,
            external_ref=request_data.external_ref if request_data else None,
        )
    except VotegateError as e:
        raise problem_exception(e, request) from None

    return CompleteResponse(
        feature=_feature_response(result.feature),
        already_implemented=result.already_implemented,
        previous_status=result.previous_status.value,
    )
