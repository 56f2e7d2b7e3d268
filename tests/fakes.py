# tests/fakes.py

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable
from typing import Any
from urllib.parse import urlsplit

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from taskboard.client.api_client import ApiError


class FlaskTransportAdapter(BaseAdapter):
    """
    requests transport that forwards to a Flask test client.

    Lets TaskApiClient run against a real app without opening a socket.
    """

    def __init__(self, app) -> None:
        super().__init__()
        self.client = app.test_client()

    def send(self, request, **kwargs):
        parts = urlsplit(request.url)
        headers = {k: v for k, v in request.headers.items() if k.lower() in ("content-type", "accept")}
        resp = self.client.open(
            parts.path,
            method=request.method,
            query_string=parts.query,
            data=request.body,
            headers=headers,
        )
        return build_response(request, resp.status_code, resp.get_data(), dict(resp.headers))

    def close(self) -> None:
        return


class CannedAdapter(BaseAdapter):
    """Answers every request with the same status/body, or raises ``exc``."""

    def __init__(self, status: int = 200, body: bytes = b"", exc: Exception | None = None) -> None:
        super().__init__()
        self.status = status
        self.body = body
        self.exc = exc
        self.requests: list[requests.PreparedRequest] = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return build_response(request, self.status, self.body, {"Content-Type": "text/plain"})

    def close(self) -> None:
        return


def build_response(request, status: int, body: bytes, headers: dict[str, str]) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body
    response.headers = CaseInsensitiveDict(headers)
    response.encoding = "utf-8"
    response.url = request.url
    response.request = request
    response.reason = "TEST"
    return response


class FakeApiClient:
    """
    In-memory stand-in for TaskApiClient used by TaskState tests.

    - ``fail`` maps a method name to the ApiError its next call raises
    - ``hooks`` maps a method name to a callback run mid-call, before the
      response is returned (used to interleave requests)
    """

    def __init__(self, tasks: list[dict[str, Any]] | None = None) -> None:
        self.tasks: dict[str, dict[str, Any]] = {t["id"]: dict(t) for t in tasks or []}
        self.calls: list[tuple[str, tuple]] = []
        self.fail: dict[str, ApiError] = {}
        self.hooks: dict[str, Callable[[], None]] = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def _enter(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail.pop(name)

    def _hook(self, name: str) -> None:
        hook = self.hooks.pop(name, None)
        if hook is not None:
            hook()

    def _stamp(self) -> str:
        return f"2030-01-01T00:00:{next(self._clock):02d}.000Z"

    def get_tasks(self, filters=None):
        self._enter("get_tasks", dict(filters or {}))
        snapshot = [copy.deepcopy(t) for t in self.tasks.values()]
        self._hook("get_tasks")
        return snapshot

    def create_task(self, task):
        self._enter("create_task", task)
        stamp = self._stamp()
        created = {
            "id": f"task-{next(self._ids)}",
            "title": task["title"].strip(),
            "description": task.get("description", ""),
            "dueDate": task.get("dueDate"),
            "priority": task.get("priority", "medium"),
            "tags": list(task.get("tags", [])),
            "completed": False,
            "createdAt": stamp,
            "updatedAt": stamp,
        }
        self.tasks[created["id"]] = created
        self._hook("create_task")
        return copy.deepcopy(created)

    def update_task(self, task_id, updates):
        self._enter("update_task", task_id, updates)
        if task_id not in self.tasks:
            raise ApiError("Task not found", 404)
        self.tasks[task_id].update(updates, updatedAt=self._stamp())
        snapshot = copy.deepcopy(self.tasks[task_id])
        self._hook("update_task")
        return snapshot

    def toggle_task(self, task_id):
        self._enter("toggle_task", task_id)
        if task_id not in self.tasks:
            raise ApiError("Task not found", 404)
        task = self.tasks[task_id]
        task.update(completed=not task["completed"], updatedAt=self._stamp())
        snapshot = copy.deepcopy(task)
        self._hook("toggle_task")
        return snapshot

    def delete_task(self, task_id):
        self._enter("delete_task", task_id)
        if self.tasks.pop(task_id, None) is None:
            raise ApiError("Task not found", 404)
        return {"message": "Task deleted successfully", "id": task_id}

    def bulk_action(self, action, task_ids):
        self._enter("bulk_action", action, list(task_ids))
        for task_id in task_ids:
            if task_id not in self.tasks:
                continue
            if action == "delete":
                del self.tasks[task_id]
            else:
                self.tasks[task_id]["completed"] = action == "complete"
        return {"message": f"{len(task_ids)} tasks updated", "count": len(task_ids)}
