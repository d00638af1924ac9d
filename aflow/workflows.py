"""Workflow business logic: creation, updates, publishing and trigger activation."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from aflow.engine import DefinitionError, find_trigger_node, parse_definition, topological_sort

logger = logging.getLogger(__name__)

WEBHOOK_SECRET_PREFIX = "whsec_"


class NotFoundError(LookupError):
    """Raised when a workflow does not exist in the workspace."""

    def __init__(self, message: str = "workflow not found") -> None:
        super().__init__(message)


class ForbiddenError(PermissionError):
    """Raised when a workflow belongs to another workspace."""

    def __init__(self, message: str = "workflow belongs to different workspace") -> None:
        super().__init__(message)


class ValidationError(ValueError):
    """Raised when input or a workflow definition is invalid."""


@dataclass
class Workflow:
    """A workflow as seen by the service."""

    id: str
    workspace_id: str
    name: str
    description: str | None = None
    active: bool = False
    latest_version: int = 0
    webhook_secret: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class WorkflowVersion:
    """An immutable version of a workflow's definition."""

    id: str
    workflow_id: str
    version: int
    definition: bytes | str
    published: bool = False
    created_at: datetime | None = None


@dataclass
class CreateInput:
    """Data for creating a workflow and its first version."""

    workspace_id: str
    name: str
    definition: bytes | str
    description: str | None = None


@dataclass
class UpdateInput:
    """Data for a metadata update (name and description only)."""

    workspace_id: str
    id: str
    name: str
    description: str | None = None


class _TriggerScheduler(Protocol):
    def schedule_cron(self, workspace_id: str, workflow_id: str, schedule: str) -> Any: ...


class _Repository(Protocol):
    def create_with_version(self, data: CreateInput) -> tuple[Workflow, WorkflowVersion]: ...
    def get_by_id(self, workspace_id: str, workflow_id: str) -> Workflow: ...
    def list(self, workspace_id: str) -> list[Workflow]: ...
    def update(self, data: UpdateInput) -> Workflow: ...
    def delete(self, workspace_id: str, workflow_id: str) -> None: ...
    def publish(self, workspace_id: str, workflow_id: str) -> tuple[Workflow, WorkflowVersion]: ...
    def deactivate(self, workspace_id: str, workflow_id: str) -> Workflow: ...
    def set_webhook_secret(self, workspace_id: str, workflow_id: str, secret: str) -> Workflow: ...
    def get_by_webhook_secret(self, workflow_id: str, secret: str) -> Workflow: ...
    def list_versions(self, workspace_id: str, workflow_id: str) -> list[WorkflowVersion]: ...


def generate_secret() -> str:
    """Return a fresh random webhook secret."""
    return WEBHOOK_SECRET_PREFIX + secrets.token_hex(32)


class WorkflowService:
    """Validates requests and delegates storage to a repository."""

    def __init__(self, repo: _Repository, scheduler: _TriggerScheduler | None = None) -> None:
        self._repo = repo
        self._scheduler = scheduler

    def create(self, data: CreateInput) -> tuple[Workflow, WorkflowVersion]:
        if not data.name:
            raise ValidationError("name is required")
        if not data.definition:
            raise ValidationError("definition is required")
        return self._repo.create_with_version(data)

    def get(self, workspace_id: str, workflow_id: str) -> Workflow:
        return self._repo.get_by_id(workspace_id, workflow_id)

    def update(self, data: UpdateInput) -> Workflow:
        if not data.name:
            raise ValidationError("name is required")
        return self._repo.update(data)

    def delete(self, workspace_id: str, workflow_id: str) -> None:
        self._repo.delete(workspace_id, workflow_id)

    def publish(self, workspace_id: str, workflow_id: str) -> tuple[Workflow, WorkflowVersion]:
        """Validate the latest definition, publish it and activate its trigger."""
        workflow = self._repo.get_by_id(workspace_id, workflow_id)
        versions = self._repo.list_versions(workspace_id, workflow.id)
        if not versions:
            raise ValidationError("workflow has no versions to publish")

        try:
            definition = parse_definition(versions[0].definition)
        except DefinitionError as exc:
            raise ValidationError(f"workflow definition is invalid JSON: {exc}") from exc
        try:
            topological_sort(definition)
        except DefinitionError as exc:
            raise ValidationError(f"workflow definition has invalid DAG: {exc}") from exc

        published, version = self._repo.publish(workspace_id, workflow_id)

        trigger = find_trigger_node(definition)
        if trigger is not None:
            if trigger.type == "trigger.webhook":
                published = self._ensure_webhook_secret(published, workspace_id, workflow_id)
            elif trigger.type == "trigger.cron":
                schedule = trigger.config.get("schedule")
                if isinstance(schedule, str) and schedule:
                    self._schedule_cron(published, workflow_id, schedule)
        return published, version

    def _ensure_webhook_secret(
        self, workflow: Workflow, workspace_id: str, workflow_id: str
    ) -> Workflow:
        if workflow.webhook_secret:
            return workflow
        try:
            return self._repo.set_webhook_secret(workspace_id, workflow_id, generate_secret())
        except Exception:
            logger.exception("failed to set webhook secret for workflow %s", workflow_id)
            return workflow

    def _schedule_cron(self, workflow: Workflow, workflow_id: str, schedule: str) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.schedule_cron(workflow.workspace_id, workflow.id, schedule)
        except Exception:
            logger.exception("failed to schedule cron for workflow %s", workflow_id)

    def deactivate(self, workspace_id: str, workflow_id: str) -> Workflow:
        return self._repo.deactivate(workspace_id, workflow_id)

    def get_by_webhook_secret(self, workflow_id: str, secret: str) -> Workflow:
        return self._repo.get_by_webhook_secret(workflow_id, secret)

    def list_versions(self, workspace_id: str, workflow_id: str) -> list[WorkflowVersion]:
        return self._repo.list_versions(workspace_id, workflow_id)

    def list(self, workspace_id: str) -> list[Workflow]:
        return self._repo.list(workspace_id)