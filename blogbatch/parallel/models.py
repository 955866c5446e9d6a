"""Work items submitted to the scheduler and their results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass
class WorkItem:
    """One unit of async work. Higher ``priority`` is dispatched first."""

    id: str
    fn: Callable[[], Awaitable[Any]]
    priority: int = 0


@dataclass
class TaskResult:
    id: str
    success: bool
    data: Any = None
    error: BaseException | None = None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None
