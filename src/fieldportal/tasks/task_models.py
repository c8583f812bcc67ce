# src/fieldportal/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.errors import MalformedResponse
from ..core.ports import TaskRecord

# Choices offered by the "include past days" selector.
PAST_DAYS_CHOICES = (0, 7, 14, 30)

TASKS_STORAGE_PREFIX = "tasksCache"


@dataclass(frozen=True, slots=True)
class TaskScope:
    """
    "Include N past days" window of a task listing.

    Every scope has its own persisted collection; loading one scope never
    touches another scope's cache.
    """

    past_days: int = 0

    def __post_init__(self) -> None:
        if self.past_days < 0:
            raise ValueError("past_days must be >= 0")

    @classmethod
    def parse(cls, raw: Any) -> TaskScope:
        if isinstance(raw, TaskScope):
            return raw
        try:
            return cls(int(str(raw).strip() or "0"))
        except ValueError as e:
            raise ValueError(f"invalid past_days value: {raw!r}") from e

    @property
    def storage_key(self) -> str:
        return f"{TASKS_STORAGE_PREFIX}:{self.past_days}"

    @property
    def tag(self) -> str:
        # Stored next to the tasks so a collection is only served for its own scope.
        return str(self.past_days)

    def query_params(self) -> dict[str, str]:
        return {"past_days": self.tag}

    def describe(self) -> str:
        return "upcoming only" if self.past_days == 0 else f"+ last {self.past_days} days"


def parse_task_payload(payload: Any) -> list[TaskRecord]:
    """
    Normalize a task listing body into a list of task records.

    Accepted: a bare list, a {"data": [...]} envelope, or a single task object.
    Anything else is malformed.
    """
    if isinstance(payload, list):
        return [t for t in payload if isinstance(t, dict)]
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return [t for t in data if isinstance(t, dict)]
        if "id" in payload:
            return [payload]
        if not payload:
            return []
    raise MalformedResponse("task payload is neither a list, an envelope nor a task")


def task_date(task: TaskRecord) -> str:
    """Calendar date of a task ("YYYY-MM-DD"), or "" when it has none."""
    for field in ("date", "planned_date_begin"):
        value = task.get(field)
        if value:
            return str(value).split(" ")[0].split("T")[0]
    return ""
