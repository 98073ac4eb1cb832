"""CAPTCHA verifier stub for development and testing."""

from __future__ import annotations

from votegate.application.ports.gates import CaptchaVerifierProtocol


class CaptchaVerifierStub(CaptchaVerifierProtocol):
    """Stub CAPTCHA verifier.

    Disabled by default, matching a deployment without a CAPTCHA secret.
    When enabled, only tokens listed in valid_tokens verify.
    """

    def __init__(
        self,
        enabled: bool = False,
        valid_tokens: set[str] | None = None,
    ) -> None:
        self._enabled = enabled
        self._valid_tokens = set(valid_tokens or ())
        self.verified_tokens: list[str] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def verify(self, token: str, remote_ip: str | None = None) -> bool:
        self.verified_tokens.append(token)
        return token in self._valid_tokens

    @classmethod
    def disabled(cls) -> CaptchaVerifierStub:
        return cls(enabled=False)

    @classmethod
    def accepting(cls, *tokens: str) -> CaptchaVerifierStub:
        return cls(enabled=True, valid_tokens=set(tokens))
