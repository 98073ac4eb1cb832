"""hCaptcha verifier.

Implements CaptchaVerifierProtocol against the hCaptcha siteverify API.
Verification fails closed: any transport error counts as a rejection.
"""

from __future__ import annotations

import httpx
from structlog import get_logger

from votegate.application.ports.gates import CaptchaVerifierProtocol

logger = get_logger(__name__)

HCAPTCHA_VERIFY_URL = "https://api.hcaptcha.com/siteverify"


class HCaptchaVerifier(CaptchaVerifierProtocol):
    """Verify hCaptcha response tokens.

    A verifier without a secret is disabled and submissions skip the gate.
    """

    def __init__(
        self,
        secret: str | None,
        verify_url: str = HCAPTCHA_VERIFY_URL,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret = secret
        self._verify_url = verify_url
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    async def verify(self, token: str, remote_ip: str | None = None) -> bool:
        if not self._secret:
            return True

        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout_seconds,
            ) as client:
                response = await client.post(self._verify_url, data=data)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "captcha_verification_unavailable",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        success = bool(body.get("success"))
        if not success:
            logger.info(
                "captcha_verification_rejected",
                error_codes=body.get("error-codes", []),
            )
        return success
