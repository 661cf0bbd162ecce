"""Tool input models and backend status vocabularies."""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Backend payloads (tasks, bugs, projects, executions) stay plain dicts;
# their shape varies per deployment.
Task = dict[str, Any]
Project = dict[str, Any]
Execution = dict[str, Any]


class TaskStatus(str, Enum):
    WAIT = "wait"
    DOING = "doing"
    DONE = "done"
    PAUSE = "pause"
    CANCEL = "cancel"
    CLOSED = "closed"
    ALL = "all"


class BugStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CLOSED = "closed"
    ALL = "all"


ResolutionKind = Literal["fixed", "notrepro", "duplicate", "bydesign", "willnotfix", "tostory", "external"]


class CreateTaskRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    desc: Optional[str] = None
    pri: Optional[int] = Field(default=None, ge=1, le=4)
    estimate: Optional[float] = None
    project: Optional[int] = None
    execution: Optional[int] = None
    module: Optional[int] = None
    story: Optional[int] = None
    type: Optional[str] = None
    assignedTo: Optional[str] = None
    estStarted: Optional[str] = None
    deadline: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        """Request fields with unset/null values dropped."""
        return self.model_dump(exclude_none=True)


class TaskUpdate(BaseModel):
    consumed: Optional[float] = None
    left: Optional[float] = None
    status: Optional[TaskStatus] = None
    finishedDate: Optional[str] = None
    comment: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")


class TaskFinish(BaseModel):
    """Extra fields accepted when finishing a task; status is always ``done``."""

    model_config = ConfigDict(extra="forbid")

    consumed: Optional[float] = None
    left: Optional[float] = None
    comment: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BugResolution(BaseModel):
    resolution: ResolutionKind
    resolvedBuild: Optional[str] = None
    duplicateBug: Optional[int] = None
    comment: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
