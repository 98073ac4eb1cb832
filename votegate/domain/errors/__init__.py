"""Domain errors for Votegate."""

from votegate.domain.errors.concurrent_modification import (
    ConcurrentTransitionError,
    VoteThresholdNotMetError,
)
from votegate.domain.errors.dispatch import (
    DispatchConfigurationError,
    DispatchError,
    DispatchRemoteError,
)
from votegate.domain.errors.feature import (
    FeatureError,
    FeatureNotFoundError,
    InvalidFeatureStateError,
    InvalidStatusTransitionError,
    ParentFeatureImplementedError,
    ParentFeatureNotFoundError,
)
from votegate.domain.errors.gates import (
    CaptchaVerificationError,
    RateLimitExceededError,
)

__all__ = [
    "CaptchaVerificationError",
    "ConcurrentTransitionError",
    "DispatchConfigurationError",
    "DispatchError",
    "DispatchRemoteError",
    "FeatureError",
    "FeatureNotFoundError",
    "InvalidFeatureStateError",
    "InvalidStatusTransitionError",
    "ParentFeatureImplementedError",
    "ParentFeatureNotFoundError",
    "RateLimitExceededError",
    "VoteThresholdNotMetError",
]
