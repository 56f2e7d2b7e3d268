import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from taskboard.models.task_model import Clock, Task, TaskDraft

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = "CASE priority WHEN 'high' THEN 1 WHEN 'medium' THEN 2 WHEN 'low' THEN 3 END"
_DUE_NULLS_LAST = "CASE WHEN dueDate IS NULL THEN 1 ELSE 0 END"

ORDER_BY = {
    "dueDate": f"{_DUE_NULLS_LAST}, dueDate ASC",
    "priority": _PRIORITY_ORDER,
    "createdAt": "createdAt DESC",
    "default": f"{_DUE_NULLS_LAST}, dueDate ASC, {_PRIORITY_ORDER}, createdAt DESC",
}

# Python attribute -> column
_COLUMNS = {
    "title": "title",
    "description": "description",
    "due_date": "dueDate",
    "priority": "priority",
    "tags": "tags",
    "completed": "completed",
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteTaskStore:
    """
    SQLite task store.

    Tags are persisted as a JSON array string and ``completed`` as 0/1; both
    are decoded back into native values before leaving the store.

    A single connection is shared behind a lock so that ``:memory:`` databases
    live as long as the store and writes are serialized.
    """

    def __init__(self, db_path="tasks.sqlite3", clock: Optional[Clock] = None):
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or Clock()
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30.0)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()
        logger.info("SqliteTaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ---- low-level helpers ----

    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    dueDate TEXT,
                    priority TEXT DEFAULT 'medium',
                    tags TEXT,
                    completed INTEGER DEFAULT 0,
                    createdAt TEXT NOT NULL,
                    updatedAt TEXT NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SqliteTaskStore migration: added column %s", name)

            add_col("description", "TEXT")
            add_col("dueDate", "TEXT")
            add_col("priority", "TEXT DEFAULT 'medium'")
            add_col("tags", "TEXT")
            add_col("completed", "INTEGER DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(completed)")
            self._conn.commit()

    @staticmethod
    def _tags_to_str(tags: List[str]) -> str:
        return json.dumps(list(tags or []), ensure_ascii=False)

    @staticmethod
    def _str_to_tags(raw: Optional[str]) -> List[str]:
        if not raw:
            return []
        try:
            val = json.loads(raw)
        except ValueError:
            logger.warning("Undecodable tags column %r; returning []", raw)
            return []
        return [str(t) for t in val] if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            due_date=row["dueDate"],
            priority=row["priority"] or "medium",
            tags=self._str_to_tags(row["tags"]),
            completed=bool(row["completed"]),
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    def _fetch(self, task_id: str) -> Optional[Task]:
        row = self._conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row is not None else None

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._lock:
            (n,) = self._conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def list_tasks(
        self,
        *,
        status: str = "all",
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "default",
    ) -> List[Task]:
        query = "SELECT * FROM tasks WHERE 1=1"
        params: List[Any] = []

        if status == "active":
            query += " AND completed = 0"
        elif status == "completed":
            query += " AND completed = 1"

        if priority:
            query += " AND priority = ?"
            params.append(priority)

        if search:
            pattern = f"%{_escape_like(search)}%"
            query += " AND (title LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\')"
            params.extend([pattern, pattern])

        query += " ORDER BY " + ORDER_BY.get(sort_by, ORDER_BY["default"])

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._fetch(task_id)

    def add_task(self, draft: TaskDraft) -> Task:
        task_id = str(uuid.uuid4())
        now = self._clock.now()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO tasks (id, title, description, dueDate, priority, tags, completed, createdAt, updatedAt)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    draft.title,
                    draft.description,
                    draft.due_date,
                    draft.priority,
                    self._tags_to_str(draft.tags),
                    0,
                    now,
                    now,
                ),
            )
            self._conn.commit()
            logger.debug("Task added id=%s priority=%s due=%s", task_id, draft.priority, draft.due_date)
            return self._fetch(task_id)

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]:
        fields: List[str] = []
        params: List[Any] = []

        for attr, value in changes.items():
            column = _COLUMNS.get(attr)
            if column is None:
                raise KeyError(f"Unknown task field: {attr}")
            if attr == "tags":
                value = self._tags_to_str(value)
            elif attr == "completed":
                value = 1 if value else 0
            fields.append(f"{column} = ?")
            params.append(value)

        with self._lock:
            if self._fetch(task_id) is None:
                return None
            fields.append("updatedAt = ?")
            params.append(self._clock.now())
            params.append(task_id)
            self._conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            self._conn.commit()
            logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))
            return self._fetch(task_id)

    def toggle_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE tasks SET completed = 1 - completed, updatedAt = ? WHERE id = ?",
                (self._clock.now(), task_id),
            )
            self._conn.commit()
            if cur.rowcount == 0:
                return None
            return self._fetch(task_id)

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            cur = self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            self._conn.commit()
            deleted = cur.rowcount > 0
        if deleted:
            logger.debug("Task deleted id=%s", task_id)
        return deleted

    def set_completed(self, task_ids: Iterable[str], completed: bool) -> int:
        now = self._clock.now()
        flag = 1 if completed else 0
        with self._lock:
            before = self._conn.total_changes
            self._conn.executemany(
                "UPDATE tasks SET completed = ?, updatedAt = ? WHERE id = ?",
                [(flag, now, task_id) for task_id in task_ids],
            )
            self._conn.commit()
            return self._conn.total_changes - before

    def delete_tasks(self, task_ids: Iterable[str]) -> int:
        with self._lock:
            before = self._conn.total_changes
            self._conn.executemany("DELETE FROM tasks WHERE id = ?", [(task_id,) for task_id in task_ids])
            self._conn.commit()
            return self._conn.total_changes - before
