"""
Client-side task state with optimistic updates.

``TaskState`` keeps the task list a UI renders. Mutations are applied to the
local list first, then sent to the API. A successful response replaces the
optimistic copy with the server's record; a failure discards every local
change by refetching the list and records the error message.

Each mutation is tracked as a ``PendingMutation``:

    pending -> confirmed | rolled_back

Responses can arrive out of order when the state is shared between threads.
Every request takes a number from a monotonic sequence, and a response is
applied only if nothing newer has been issued for the same target: the
latest refresh for the list, the latest mutation for a task id. A list
fetched before a mutation was issued is refetched rather than applied.
"""

import itertools
import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from taskboard.client.api_client import ApiError, TaskApiClient

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "tmp-"


class MutationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingMutation:
    seq: int
    kind: str  # add | update | toggle | delete
    task_id: str
    state: MutationState = MutationState.PENDING
    error: Optional[str] = None


@dataclass(frozen=True)
class TaskFilters:
    status: str = "all"
    priority: Optional[str] = None
    search: str = ""
    sort_by: str = "default"

    def to_params(self) -> Dict[str, str]:
        """Query parameters for the list endpoint; empty values are left out."""
        params = {}
        if self.status and self.status != "all":
            params["status"] = self.status
        if self.priority:
            params["priority"] = self.priority
        if self.search:
            params["search"] = self.search
        if self.sort_by:
            params["sortBy"] = self.sort_by
        return params


class TaskState:
    def __init__(self, api: TaskApiClient, filters: Optional[TaskFilters] = None,
                 auto_refresh: bool = True, history_size: int = 100):
        self.api = api
        self.auto_refresh = auto_refresh
        self.loading = False
        self.error: Optional[str] = None
        self._filters = filters or TaskFilters()
        self._tasks: List[Dict[str, Any]] = []
        self._lock = threading.RLock()
        self._seq = itertools.count(1)
        self._latest_refresh = 0
        self._latest_mutation = 0
        self._latest_by_task: Dict[str, int] = {}
        self._listeners: List[Callable[["TaskState"], None]] = []
        self.mutations: Deque[PendingMutation] = deque(maxlen=history_size)

    # ---- read side ----

    @property
    def tasks(self) -> Tuple[Dict[str, Any], ...]:
        with self._lock:
            return tuple(dict(t) for t in self._tasks)

    @property
    def filters(self) -> TaskFilters:
        return self._filters

    def get(self, task_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for task in self._tasks:
                if task["id"] == task_id:
                    return dict(task)
        return None

    @property
    def pending(self) -> List[PendingMutation]:
        return [m for m in self.mutations if m.state is MutationState.PENDING]

    def subscribe(self, callback: Callable[["TaskState"], None]) -> Callable[[], None]:
        """Register ``callback`` for state changes; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    # ---- list refresh ----

    def refresh(self) -> None:
        with self._lock:
            seq = next(self._seq)
            self._latest_refresh = seq
            self.loading = True
            self.error = None
        self._notify()

        try:
            fetched = self.api.get_tasks(self._filters.to_params())
        except ApiError as exc:
            logger.error("Error fetching tasks: %s", exc.message)
            with self._lock:
                if seq != self._latest_refresh:
                    return
                self.error = exc.message
                self.loading = False
            self._notify()
            return

        with self._lock:
            if seq != self._latest_refresh:
                logger.debug("Discarding stale task list (seq=%d latest=%d)", seq, self._latest_refresh)
                return
            refetch = seq < self._latest_mutation
            if not refetch:
                self._tasks = [dict(t) for t in fetched]
                self.loading = False
        if refetch:
            logger.debug("Task list predates a mutation (seq=%d), refetching", seq)
            self.refresh()
            return
        self._notify()

    def update_filters(self, **changes) -> None:
        if "sortBy" in changes:
            changes["sort_by"] = changes.pop("sortBy")
        new_filters = replace(self._filters, **changes)
        self._set_filters(new_filters)

    def clear_filters(self) -> None:
        self._set_filters(TaskFilters())

    def _set_filters(self, new_filters: TaskFilters) -> None:
        if new_filters == self._filters:
            return
        self._filters = new_filters
        logger.debug("Filters changed: %s", asdict(new_filters))
        if self.auto_refresh:
            self.refresh()
        else:
            self._notify()

    # ---- mutation bookkeeping ----

    def _begin(self, kind: str, task_id: str, apply: Callable[[], None]) -> PendingMutation:
        with self._lock:
            mutation = PendingMutation(seq=next(self._seq), kind=kind, task_id=task_id)
            self._latest_by_task[task_id] = mutation.seq
            self._latest_mutation = mutation.seq
            self.mutations.append(mutation)
            self.error = None
            apply()
        self._notify()
        return mutation

    def _is_latest(self, mutation: PendingMutation) -> bool:
        return self._latest_by_task.get(mutation.task_id) == mutation.seq

    def _settle(self, mutation: PendingMutation, state: MutationState) -> bool:
        """Mark ``mutation`` finished; True if it was the latest for its task."""
        mutation.state = state
        latest = self._is_latest(mutation)
        if latest:
            del self._latest_by_task[mutation.task_id]
        return latest

    def _confirm(self, mutation: PendingMutation, server_task: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            latest = self._settle(mutation, MutationState.CONFIRMED)
            if server_task is not None and latest:
                self._replace(mutation.task_id, server_task)
        self._notify()

    def _roll_back(self, mutation: PendingMutation, exc: ApiError) -> None:
        logger.warning("%s of task %s failed, refetching: %s", mutation.kind, mutation.task_id, exc.message)
        with self._lock:
            self._settle(mutation, MutationState.ROLLED_BACK)
            mutation.error = exc.message
        self.refresh()
        with self._lock:
            self.error = exc.message
        self._notify()

    def _replace(self, task_id: str, task: Dict[str, Any]) -> None:
        self._tasks = [dict(task) if t["id"] == task_id else t for t in self._tasks]

    # ---- mutations ----

    def add_task(self, data: Dict[str, Any]) -> Dict[str, Any]:
        temp_id = f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"
        placeholder = {
            "description": "",
            "dueDate": None,
            "priority": "medium",
            "tags": [],
            **data,
            "id": temp_id,
            "completed": False,
            "createdAt": None,
            "updatedAt": None,
        }
        if isinstance(placeholder.get("title"), str):
            placeholder["title"] = placeholder["title"].strip()

        def apply():
            self._tasks.insert(0, placeholder)

        mutation = self._begin("add", temp_id, apply)
        try:
            created = self.api.create_task(data)
        except ApiError as exc:
            self._roll_back(mutation, exc)
            raise

        with self._lock:
            self._settle(mutation, MutationState.CONFIRMED)
            if any(t["id"] == temp_id for t in self._tasks):
                self._replace(temp_id, created)
            elif not any(t["id"] == created["id"] for t in self._tasks):
                self._tasks.insert(0, dict(created))
        self._notify()
        return created

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        def apply():
            self._tasks = [{**t, **updates} if t["id"] == task_id else t for t in self._tasks]

        mutation = self._begin("update", task_id, apply)
        try:
            updated = self.api.update_task(task_id, updates)
        except ApiError as exc:
            self._roll_back(mutation, exc)
            raise
        self._confirm(mutation, updated)
        return updated

    def toggle_task(self, task_id: str) -> Dict[str, Any]:
        def apply():
            self._tasks = [
                {**t, "completed": not t.get("completed")} if t["id"] == task_id else t
                for t in self._tasks
            ]

        mutation = self._begin("toggle", task_id, apply)
        try:
            toggled = self.api.toggle_task(task_id)
        except ApiError as exc:
            self._roll_back(mutation, exc)
            raise
        self._confirm(mutation, toggled)
        return toggled

    def delete_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        removed = self.get(task_id)

        def apply():
            self._tasks = [t for t in self._tasks if t["id"] != task_id]

        mutation = self._begin("delete", task_id, apply)
        try:
            self.api.delete_task(task_id)
        except ApiError as exc:
            self._roll_back(mutation, exc)
            raise
        self._confirm(mutation)
        return removed

    def bulk_action(self, action: str, task_ids: List[str]) -> Dict[str, Any]:
        with self._lock:
            self.error = None
        try:
            result = self.api.bulk_action(action, task_ids)
        except ApiError as exc:
            logger.error("Bulk %s failed: %s", action, exc.message)
            with self._lock:
                self.error = exc.message
            self._notify()
            raise
        self.refresh()
        return result
