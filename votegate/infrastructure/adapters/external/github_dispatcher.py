"""GitHub Actions workflow dispatcher.

Implements ImplementationDispatcherProtocol by triggering a
``workflow_dispatch`` event on the implementation workflow:

    POST {api_url}/repos/{owner}/{repo}/actions/workflows/{workflow}/dispatches
    {"ref": "main", "inputs": {"feature_id", "feature_title", "feature_content"}}

GitHub answers 204 No Content on success. Any other status, transport
error or timeout is a DispatchRemoteError.
"""

from __future__ import annotations

from uuid import UUID

import httpx
from structlog import get_logger

from votegate.application.ports.implementation_dispatcher import (
    DispatchResult,
    ImplementationDispatcherProtocol,
)
from votegate.config.pipeline_config import DispatchConfig
from votegate.domain.errors.dispatch import (
    DispatchConfigurationError,
    DispatchRemoteError,
)

logger = get_logger(__name__)

GITHUB_ACCEPT_HEADER = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"

# workflow_dispatch inputs are strings capped by GitHub; keep the body bounded
MAX_INPUT_LENGTH = 60_000


class GitHubWorkflowDispatcher(ImplementationDispatcherProtocol):
    """Dispatch implementation runs through GitHub Actions.

    Attributes:
        config: Dispatch settings (token, repository, workflow, timeout).
    """

    def __init__(
        self,
        config: DispatchConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Dispatch settings.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.config = config
        self._transport = transport

    def _dispatch_url(self) -> str:
        return (
            f"{self.config.api_url.rstrip('/')}/repos/{self.config.github_repository}"
            f"/actions/workflows/{self.config.workflow}/dispatches"
        )

    def _check_configuration(self) -> None:
        missing = []
        if not self.config.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.config.github_repository:
            missing.append("GITHUB_REPOSITORY")
        if missing:
            raise DispatchConfigurationError(missing=tuple(missing))

    async def dispatch(
        self,
        feature_id: UUID,
        title: str,
        description: str,
    ) -> DispatchResult:
        self._check_configuration()

        log = logger.bind(
            feature_id=str(feature_id),
            repository=self.config.github_repository,
            workflow=self.config.workflow,
        )

        payload = {
            "ref": self.config.ref,
            "inputs": {
                "feature_id": str(feature_id),
                "feature_title": title[:MAX_INPUT_LENGTH],
                "feature_content": description[:MAX_INPUT_LENGTH],
            },
        }
        headers = {
            "Accept": GITHUB_ACCEPT_HEADER,
            "Authorization": f"Bearer {self.config.github_token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

        log.info("github_workflow_dispatch_started")
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.timeout_seconds,
            ) as client:
                response = await client.post(
                    self._dispatch_url(),
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            log.error("github_workflow_dispatch_timeout", error=str(e))
            raise DispatchRemoteError(
                feature_id=feature_id,
                reason=f"Timed out after {self.config.timeout_seconds}s",
            ) from e
        except httpx.HTTPError as e:
            log.error(
                "github_workflow_dispatch_transport_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DispatchRemoteError(
                feature_id=feature_id,
                reason=f"{type(e).__name__}: {e}",
            ) from e

        if not response.is_success:
            body = response.text[:500]
            log.error(
                "github_workflow_dispatch_rejected",
                status_code=response.status_code,
                body=body,
            )
            raise DispatchRemoteError(
                feature_id=feature_id,
                reason=body or response.reason_phrase,
                status_code=response.status_code,
            )

        log.info("github_workflow_dispatch_accepted", status_code=response.status_code)
        return DispatchResult(
            success=True,
            message="GitHub Action triggered successfully",
        )
