"""Application ports (protocols) for Votegate."""

from votegate.application.ports.feature_repository import FeatureRepositoryProtocol
from votegate.application.ports.gates import (
    CaptchaVerifierProtocol,
    RateLimitDecision,
    RateLimiterProtocol,
)
from votegate.application.ports.implementation_dispatcher import (
    DispatchResult,
    ImplementationDispatcherProtocol,
)
from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol
from votegate.application.ports.vote_ledger import VoteLedgerProtocol, VoteToggleResult

__all__ = [
    "CaptchaVerifierProtocol",
    "DispatchResult",
    "FeatureRepositoryProtocol",
    "ImplementationDispatcherProtocol",
    "LiveBroadcasterProtocol",
    "PipelineMetricsProtocol",
    "RateLimitDecision",
    "RateLimiterProtocol",
    "VoteLedgerProtocol",
    "VoteToggleResult",
]
