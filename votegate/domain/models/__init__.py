"""Domain models for Votegate."""

from votegate.domain.models.completion_notification import (
    CompletionNotification,
    CompletionOutcome,
)
from votegate.domain.models.feature import (
    PRIVILEGED_TRANSITIONS,
    STATUS_TRANSITION_MATRIX,
    TITLE_MAX_LENGTH,
    Feature,
    FeatureStatus,
    Vote,
    VoteAction,
)

__all__ = [
    "CompletionNotification",
    "CompletionOutcome",
    "Feature",
    "FeatureStatus",
    "PRIVILEGED_TRANSITIONS",
    "STATUS_TRANSITION_MATRIX",
    "TITLE_MAX_LENGTH",
    "Vote",
    "VoteAction",
]
