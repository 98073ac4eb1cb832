"""Infrastructure stubs for development and testing.

Available stubs:
- FeatureStoreStub: In-memory feature repository and vote ledger with CAS
- ImplementationDispatcherStub: Records dispatches, can fail on demand
- CaptchaVerifierStub: Disabled or token-list CAPTCHA verifier
"""

from votegate.infrastructure.stubs.captcha_verifier_stub import CaptchaVerifierStub
from votegate.infrastructure.stubs.feature_store_stub import FeatureStoreStub
from votegate.infrastructure.stubs.implementation_dispatcher_stub import (
    DispatchCall,
    ImplementationDispatcherStub,
)

__all__ = [
    "CaptchaVerifierStub",
    "DispatchCall",
    "FeatureStoreStub",
    "ImplementationDispatcherStub",
]
