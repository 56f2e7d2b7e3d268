import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from taskboard.config import ClientConfig

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A failed API call, carrying the best message available."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TaskApiClient:
    """Thin ``requests`` wrapper around the task endpoints."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or ClientConfig.API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else ClientConfig.TIMEOUT

    def _request(self, method: str, endpoint: str, *, params=None, body=None) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        try:
            resp = self.session.request(
                method, url, params=params, json=body, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error("API Error [%s %s]: %s", method, endpoint, exc)
            raise ApiError(str(exc) or "Request failed") from exc

        if not resp.ok:
            try:
                payload = resp.json()
            except ValueError:
                payload = {"error": "Request failed"}
            message = None
            if isinstance(payload, dict):
                message = payload.get("error")
            message = message or f"HTTP error {resp.status_code}"
            logger.error("API Error [%s %s]: %s (%s)", method, endpoint, message, resp.status_code)
            raise ApiError(message, resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            logger.error("API Error [%s %s]: response body is not JSON", method, endpoint)
            raise ApiError("Invalid JSON response", resp.status_code) from exc

    @staticmethod
    def _task_path(task_id: str) -> str:
        return f"/tasks/{quote(str(task_id), safe='')}"

    def get_tasks(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        params = {key: value for key, value in (filters or {}).items() if value}
        return self._request("GET", "/tasks", params=params or None)

    def create_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/tasks", body=task)

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", self._task_path(task_id), body=updates)

    def toggle_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("PATCH", f"{self._task_path(task_id)}/toggle")

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("DELETE", self._task_path(task_id))

    def bulk_action(self, action: str, task_ids: List[str]) -> Dict[str, Any]:
        return self._request("POST", "/tasks/bulk", body={"action": action, "taskIds": list(task_ids)})

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")
