"""Feature board API routes.

Endpoints:
- GET  /v1/features              board (anonymous allowed)
- GET  /v1/features/{id}         single feature (anonymous allowed)
- POST /v1/features              submit a feature request
- POST /v1/features/{id}/vote    toggle the caller's vote

Developer Golden Rules:
1. SERVICES DECIDE - routes translate HTTP to service calls and back
2. ERRORS ARE PROBLEMS - domain errors become RFC 7807 bodies
3. PARTIAL SUCCESS IS SUCCESS - a failed dispatch still answers 200
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from votegate.api.auth.caller_identity import get_current_user_id, get_optional_user_id
from votegate.api.dependencies.pipeline import (
    get_board_service,
    get_submission_service,
    get_threshold_trigger,
    get_vote_service,
)
from votegate.api.models.errors import ErrorResponse, problem_exception
from votegate.api.models.features import (
    BoardResponse,
    CreateFeatureRequest,
    CreateFeatureResponse,
    FeatureResponse,
    VoteResponse,
)
from votegate.application.services.feature_board_service import (
    FeatureBoardService,
    FeatureView,
)
from votegate.application.services.feature_submission_service import (
    FeatureSubmissionService,
)
from votegate.application.services.threshold_trigger_service import (
    ThresholdTriggerService,
)
from votegate.application.services.vote_service import VoteService
from votegate.domain.exceptions import VotegateError

router = APIRouter(prefix="/v1/features", tags=["features"])


@router.get(
    "",
    response_model=BoardResponse,
    summary="Get the feature board",
)
async def get_board(
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
    board_service: Annotated[FeatureBoardService, Depends(get_board_service)],
    threshold_trigger: Annotated[ThresholdTriggerService, Depends(get_threshold_trigger)],
) -> BoardResponse:
    """Open features by live vote count, then implemented features.

    Pending features show live counts; implementing and implemented
    features show the count frozen when implementation started.
    """
    board = await board_service.get_board(user_id)
    return BoardResponse.from_board(board, threshold=threshold_trigger.threshold)


@router.get(
    "/{feature_id}",
    response_model=FeatureResponse,
    responses={404: {"model": ErrorResponse, "description": "Feature not found"}},
    summary="Get a single feature",
)
async def get_feature(
    feature_id: UUID,
    request: Request,
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
    board_service: Annotated[FeatureBoardService, Depends(get_board_service)],
) -> FeatureResponse:
    try:
        view = await board_service.get_feature(feature_id, user_id)
    except VotegateError as e:
        raise problem_exception(e, request) from None
    return FeatureResponse.from_view(view)


@router.post(
    "",
    response_model=CreateFeatureResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse, "description": "CAPTCHA failed or invalid data"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Parent feature not found"},
        409: {"model": ErrorResponse, "description": "Parent feature implemented"},
        429: {"model": ErrorResponse, "description": "Submission limit reached"},
    },
    summary="Submit a feature request",
)
async def create_feature(
    request_data: CreateFeatureRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[FeatureSubmissionService, Depends(get_submission_service)],
) -> CreateFeatureResponse:
    """Create a feature request; the creator's own vote is recorded with it."""
    try:
        result = await service.submit(
            creator_id=user_id,
            title=request_data.title,
            description=request_data.description,
            parent_id=request_data.parent_id,
            captcha_token=request_data.captcha_token,
            remote_ip=request.client.host if request.client else None,
        )
    except VotegateError as e:
        raise problem_exception(e, request) from None
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_feature",
                "type": "urn:votegate:error:invalid_feature",
                "title": "Invalid Feature",
                "status": 400,
                "detail": str(e),
                "instance": str(request.url),
            },
        ) from None

    view = FeatureView(
        feature=result.feature,
        vote_total=result.vote_total,
        user_has_voted=result.creator_has_voted,
    )
    return CreateFeatureResponse(
        feature=FeatureResponse.from_view(view),
        has_voted=result.creator_has_voted,
        vote_total=result.vote_total,
        implementing=result.implementing,
    )


@router.post(
    "/{feature_id}/vote",
    response_model=VoteResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Feature not found"},
        409: {"model": ErrorResponse, "description": "Feature not accepting votes"},
        429: {"model": ErrorResponse, "description": "Vote rate limit reached"},
    },
    summary="Toggle a vote",
)
async def vote(
    feature_id: UUID,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[VoteService, Depends(get_vote_service)],
) -> VoteResponse:
    """Add the caller's vote, or remove it if already present.

    Reaching the implementation threshold claims the feature and starts
    the implementation agent within the same request.
    """
    try:
        outcome = await service.cast_vote(user_id, feature_id)
    except VotegateError as e:
        raise problem_exception(e, request) from None

    return VoteResponse(
        action=outcome.action.value,
        has_voted=outcome.has_voted,
        vote_total=outcome.vote_total,
        implementing=outcome.implementing,
        dispatched=outcome.dispatched,
        message=outcome.message,
    )
