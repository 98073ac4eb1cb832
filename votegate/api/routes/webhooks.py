"""Completion webhooks.

Endpoints:
- POST /v1/webhooks/implementation-complete  explicit notification(s)
- POST /v1/webhooks/github                   GitHub workflow_run events

Both always answer ``{"status": "ok"}``: per-notification outcomes
(unknown feature, duplicate, stale) are logged, never returned as errors,
so the sender does not retry deliveries that can never succeed.
"""

import hashlib
import hmac
import json
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError
from structlog import get_logger

from votegate.api.dependencies.pipeline import (
    get_dispatch_config,
    get_reconciler_service,
    get_security_config,
)
from votegate.api.models.webhooks import (
    GitHubWorkflowRunEvent,
    WebhookAck,
    parse_completion_items,
)
from votegate.application.services.completion_reconciler_service import (
    CompletionReconcilerService,
)
from votegate.config.pipeline_config import DispatchConfig, SecurityConfig

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])

SIGNATURE_PREFIX = "sha256="


def verify_github_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check an X-Hub-Signature-256 header against the raw body."""
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len(SIGNATURE_PREFIX):])


@router.post(
    "/implementation-complete",
    response_model=WebhookAck,
    summary="Report implementation completion",
)
async def implementation_complete(
    request: Request,
    reconciler: Annotated[
        CompletionReconcilerService, Depends(get_reconciler_service)
    ],
) -> WebhookAck:
    """Apply one notification or a batch of them.

    Items are validated one by one; malformed items are logged and
    skipped while the rest of the delivery is still reconciled.
    """
    try:
        payload = json.loads(await request.body())
    except ValueError as e:
        logger.warning(
            "implementation_complete_payload_invalid",
            error_type=type(e).__name__,
        )
        return WebhookAck()

    requests, rejected = parse_completion_items(payload)
    for item in rejected:
        logger.warning(
            "implementation_complete_item_invalid",
            index=item.index,
            errors=item.errors,
        )

    results = await reconciler.reconcile_many([r.to_notification() for r in requests])
    logger.info(
        "implementation_complete_webhook_processed",
        notifications=len(results),
        rejected=len(rejected),
        outcomes=[r.outcome.value for r in results],
    )
    return WebhookAck()


@router.post(
    "/github",
    response_model=WebhookAck,
    summary="GitHub workflow_run webhook",
)
async def github_webhook(
    request: Request,
    reconciler: Annotated[
        CompletionReconcilerService, Depends(get_reconciler_service)
    ],
    security: Annotated[SecurityConfig, Depends(get_security_config)],
    dispatch_config: Annotated[DispatchConfig, Depends(get_dispatch_config)],
    x_github_event: Annotated[str | None, Header()] = None,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """Reconcile completed runs of the implementation workflow.

    Signature verification applies when GITHUB_WEBHOOK_SECRET is set;
    unsigned or mis-signed deliveries are logged and ignored.
    """
    body = await request.body()
    log = logger.bind(github_event=x_github_event)

    if security.github_webhook_secret and not verify_github_signature(
        security.github_webhook_secret, body, x_hub_signature_256
    ):
        log.warning("github_webhook_signature_invalid")
        return WebhookAck()

    if x_github_event is not None and x_github_event != "workflow_run":
        log.debug("github_webhook_ignored", reason="unhandled_event")
        return WebhookAck()

    try:
        event = GitHubWorkflowRunEvent.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        log.warning(
            "github_webhook_payload_invalid",
            error_type=type(e).__name__,
        )
        return WebhookAck()

    if not event.is_completed_run_of(dispatch_config.workflow):
        log.debug(
            "github_webhook_ignored",
            reason="not_a_completed_implementation_run",
            action=event.action,
        )
        return WebhookAck()

    notification = event.to_notification()
    results = await reconciler.reconcile_many([notification])
    log.info(
        "github_workflow_run_processed",
        conclusion=event.workflow_run.conclusion if event.workflow_run else None,
        run_url=notification.external_ref,
        outcome=results[0].outcome.value,
    )
    return WebhookAck()
