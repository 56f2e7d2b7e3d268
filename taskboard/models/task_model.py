from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import threading
from typing import Any, Dict, List, Optional


PRIORITIES = ("low", "medium", "high")
PRIORITY_RANK = {"high": 1, "medium": 2, "low": 3}
STATUSES = ("all", "active", "completed")
SORT_KEYS = ("default", "dueDate", "priority", "createdAt")
BULK_ACTIONS = ("complete", "uncomplete", "delete")


class ValidationError(ValueError):
    """Client-correctable problem with a request body."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class Task:
    id: str
    title: str
    created_at: str
    updated_at: str
    description: str = ""
    due_date: Optional[str] = None
    priority: str = "medium"  # low | medium | high
    tags: List[str] = field(default_factory=list)
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date,
            "priority": self.priority,
            "tags": list(self.tags),
            "completed": bool(self.completed),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class TaskDraft:
    """Validated creation payload; the store assigns id and timestamps."""

    title: str
    description: str = ""
    due_date: Optional[str] = None
    priority: str = "medium"
    tags: List[str] = field(default_factory=list)


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    value = value.astimezone(timezone.utc)
    # %Y is not zero-padded below year 1000 on every platform.
    return f"{value.year:04d}-{value:%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def parse_iso(raw: str) -> datetime:
    """Parse an ISO-8601 date or date-time; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(raw.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Clock:
    """Issues UTC timestamps that never repeat or go backwards."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last: Optional[datetime] = None

    def now(self) -> str:
        with self._lock:
            now = datetime.now(timezone.utc)
            current = now.replace(microsecond=now.microsecond // 1000 * 1000)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(milliseconds=1)
            self._last = current
            return format_timestamp(current)


def _clean_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Task title is required and cannot be empty")
    return value.strip()


def _clean_description(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("Description must be a string")
    return value.strip()


def _clean_due_date(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("Invalid due date format")
    try:
        return format_timestamp(parse_iso(value))
    except (ValueError, OverflowError):
        raise ValidationError("Invalid due date format") from None


def _clean_priority(value: Any) -> str:
    if value not in PRIORITIES:
        raise ValidationError("Priority must be low, medium, or high")
    return value


def _clean_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise ValidationError("Tags must be a list of strings")
    return list(value)


def _require_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def validate_new_task(payload: Any) -> TaskDraft:
    payload = _require_object(payload)
    return TaskDraft(
        title=_clean_title(payload.get("title")),
        description=_clean_description(payload.get("description")),
        due_date=_clean_due_date(payload.get("dueDate")),
        priority=_clean_priority(payload["priority"]) if "priority" in payload else "medium",
        tags=_clean_tags(payload.get("tags")),
    )


def validate_task_updates(payload: Any) -> Dict[str, Any]:
    """Return only the supplied mutable fields, keyed by store column name."""
    payload = _require_object(payload)
    updates: Dict[str, Any] = {}
    if "title" in payload:
        updates["title"] = _clean_title(payload["title"])
    if "description" in payload:
        updates["description"] = _clean_description(payload["description"])
    if "dueDate" in payload:
        updates["due_date"] = _clean_due_date(payload["dueDate"])
    if "priority" in payload:
        updates["priority"] = _clean_priority(payload["priority"])
    if "tags" in payload:
        updates["tags"] = _clean_tags(payload["tags"])
    if "completed" in payload:
        if not isinstance(payload["completed"], bool):
            raise ValidationError("Completed must be true or false")
        updates["completed"] = payload["completed"]
    return updates


def validate_bulk_request(payload: Any):
    payload = _require_object(payload)
    task_ids = payload.get("taskIds")
    if not isinstance(task_ids, list) or not task_ids:
        raise ValidationError("taskIds must be a non-empty array")
    if not all(isinstance(i, str) for i in task_ids):
        raise ValidationError("taskIds must contain only string ids")
    action = payload.get("action")
    if action not in BULK_ACTIONS:
        raise ValidationError("Invalid action. Must be complete, uncomplete, or delete")
    return action, task_ids


def sort_tasks(tasks: List[Task], sort_by: str = "default") -> List[Task]:
    """Order tasks the same way the SQL ``ORDER BY`` clauses do.

    Python's sort is stable, so multi-key orders are applied least
    significant first.
    """
    ordered = list(tasks)

    def no_due(task):
        return task.due_date is None

    if sort_by == "dueDate":
        ordered.sort(key=lambda t: t.due_date or "")
        ordered.sort(key=no_due)
    elif sort_by == "priority":
        ordered.sort(key=lambda t: PRIORITY_RANK.get(t.priority, 4))
    elif sort_by == "createdAt":
        ordered.sort(key=lambda t: t.created_at, reverse=True)
    else:
        ordered.sort(key=lambda t: t.created_at, reverse=True)
        ordered.sort(key=lambda t: PRIORITY_RANK.get(t.priority, 4))
        ordered.sort(key=lambda t: t.due_date or "")
        ordered.sort(key=no_due)
    return ordered
