"""
Task store adapters.

The API layer depends on the ``TaskRepo`` protocol rather than a concrete
database, so the SQLite and MongoDB adapters (or a test double) can be
swapped without touching the routes.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol

from taskboard.models.task_model import Task, TaskDraft


class TaskRepo(Protocol):
    def list_tasks(
        self,
        *,
        status: str = "all",
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "default",
    ) -> List[Task]: ...

    def get_task(self, task_id: str) -> Optional[Task]: ...

    def add_task(self, draft: TaskDraft) -> Task: ...

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]: ...

    def toggle_task(self, task_id: str) -> Optional[Task]: ...

    def delete_task(self, task_id: str) -> bool: ...

    def set_completed(self, task_ids: Iterable[str], completed: bool) -> int: ...

    def delete_tasks(self, task_ids: Iterable[str]) -> int: ...

    def count_tasks(self) -> int: ...

    def close(self) -> None: ...
