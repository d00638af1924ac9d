"""Payloads of the queued job kinds."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class CronTriggerArgs:
    """Payload for a scheduled cron trigger."""

    workflow_id: str
    workspace_id: str
    schedule: str

    kind: ClassVar[str] = "cron.trigger"

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON payload of the job."""
        return asdict(self)


@dataclass(frozen=True)
class WorkflowExecuteArgs:
    """Payload for running one workflow execution."""

    execution_id: str

    kind: ClassVar[str] = "workflow.execute"

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON payload of the job."""
        return asdict(self)