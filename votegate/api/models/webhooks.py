"""Completion webhook payload models.

Two inbound forms:
- the explicit notification posted by the implementation agent
  (``{"feature_id", "success" | "outcome", "pr_url" | "external_ref", "text"}``)
- GitHub's ``workflow_run`` webhook event
"""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from votegate.domain.models.completion_notification import (
    CompletionNotification,
    CompletionOutcome,
)


class ImplementationCompleteRequest(BaseModel):
    """Explicit completion notification.

    ``success`` (boolean) and ``outcome`` are alternatives; exactly one
    must be given. ``pr_url`` is accepted as an alias of ``external_ref``.
    """

    model_config = ConfigDict(extra="ignore")

    feature_id: UUID | None = None
    success: bool | None = None
    outcome: Literal["success", "failure"] | None = None
    external_ref: str | None = Field(default=None, max_length=2048)
    pr_url: str | None = Field(default=None, max_length=2048)
    text: str | None = Field(default=None, max_length=10_000)

    @model_validator(mode="after")
    def require_outcome(self) -> "ImplementationCompleteRequest":
        if (self.success is None) == (self.outcome is None):
            raise ValueError("exactly one of 'success' or 'outcome' is required")
        return self

    def to_notification(self) -> CompletionNotification:
        if self.outcome is not None:
            outcome = CompletionOutcome(self.outcome)
        else:
            outcome = (
                CompletionOutcome.SUCCESS if self.success else CompletionOutcome.FAILURE
            )
        return CompletionNotification(
            outcome=outcome,
            feature_id=self.feature_id,
            external_ref=self.external_ref or self.pr_url,
            text=self.text,
            source="implementation_webhook",
        )


class InvalidCompletionItem(BaseModel):
    """A notification in a delivery that failed validation."""

    index: int
    errors: list[str]


def parse_completion_items(
    payload: Any,
) -> tuple[list[ImplementationCompleteRequest], list[InvalidCompletionItem]]:
    """Split a delivery into valid notifications and rejected items.

    Accepts a single notification object, ``{"notifications": [...]}`` or a
    bare list. Each item is validated on its own, so one malformed entry
    never prevents the others from being reconciled.
    """
    if isinstance(payload, dict) and "notifications" in payload:
        items = payload["notifications"]
    elif isinstance(payload, list):
        items = payload
    else:
        items = [payload]
    if not isinstance(items, list):
        items = [items]

    valid: list[ImplementationCompleteRequest] = []
    invalid: list[InvalidCompletionItem] = []
    for index, item in enumerate(items):
        try:
            valid.append(ImplementationCompleteRequest.model_validate(item))
        except ValidationError as e:
            invalid.append(
                InvalidCompletionItem(
                    index=index,
                    errors=[
                        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['type']}"
                        for err in e.errors()
                    ],
                )
            )
    return valid, invalid


class WebhookAck(BaseModel):
    """Webhook acknowledgement. Always ``{"status": "ok"}``."""

    status: Literal["ok"] = "ok"


class GitHubHeadCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None


class GitHubWorkflow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    path: str | None = None


class GitHubWorkflowRun(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str | None = None
    path: str | None = None
    conclusion: str | None = None
    html_url: str | None = None
    display_title: str | None = None
    head_commit: GitHubHeadCommit | None = None


class GitHubWorkflowRunEvent(BaseModel):
    """Subset of GitHub's ``workflow_run`` webhook payload."""

    model_config = ConfigDict(extra="ignore")

    action: str | None = None
    workflow: GitHubWorkflow | None = None
    workflow_run: GitHubWorkflowRun | None = None

    def is_completed_run_of(self, workflow_file: str) -> bool:
        """Whether this is a completed run of the given workflow file."""
        if self.action != "completed" or self.workflow_run is None:
            return False
        paths = [self.workflow_run.path]
        if self.workflow is not None:
            paths.append(self.workflow.path)
        return any(
            path is not None
            and (path == workflow_file or path.endswith(f"/{workflow_file}"))
            for path in paths
        )

    def to_notification(self) -> CompletionNotification:
        """Translate into a notification identified by free text only.

        GitHub does not echo workflow_dispatch inputs back, so the feature
        is recognised from the run title or the head commit message.
        """
        run = self.workflow_run or GitHubWorkflowRun()
        texts = [run.display_title]
        if run.head_commit is not None:
            texts.append(run.head_commit.message)
        return CompletionNotification(
            outcome=(
                CompletionOutcome.SUCCESS
                if run.conclusion == "success"
                else CompletionOutcome.FAILURE
            ),
            external_ref=run.html_url,
            text="\n".join(t for t in texts if t) or None,
            source="github_workflow_run",
        )
