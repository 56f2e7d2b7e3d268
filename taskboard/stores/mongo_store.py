import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ReturnDocument

from taskboard.models.task_model import Clock, Task, TaskDraft, sort_tasks

logger = logging.getLogger(__name__)

_FIELDS = {
    "title": "title",
    "description": "description",
    "due_date": "dueDate",
    "priority": "priority",
    "tags": "tags",
    "completed": "completed",
}


def doc_to_task(doc: Dict[str, Any]) -> Task:
    return Task(
        id=str(doc["_id"]),
        title=doc["title"],
        description=doc.get("description") or "",
        due_date=doc.get("dueDate"),
        priority=doc.get("priority") or "medium",
        tags=list(doc.get("tags") or []),
        completed=bool(doc.get("completed")),
        created_at=doc["createdAt"],
        updated_at=doc["updatedAt"],
    )


class MongoTaskStore:
    """Task store backed by a MongoDB collection; ``_id`` is the task id."""

    def __init__(self, collection, clock: Optional[Clock] = None):
        self._col = collection
        self._clock = clock or Clock()
        self._col.create_index("completed")
        logger.info("MongoTaskStore ready collection=%s total=%s", collection.name, self.count_tasks())

    def close(self) -> None:
        # The MongoClient is owned by whoever built the collection.
        return

    def count_tasks(self) -> int:
        return self._col.count_documents({})

    def list_tasks(
        self,
        *,
        status: str = "all",
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "default",
    ) -> List[Task]:
        query: Dict[str, Any] = {}
        if status == "active":
            query["completed"] = False
        elif status == "completed":
            query["completed"] = True
        if priority:
            query["priority"] = priority
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"description": pattern}]

        tasks = [doc_to_task(d) for d in self._col.find(query)]
        return sort_tasks(tasks, sort_by)

    def get_task(self, task_id: str) -> Optional[Task]:
        doc = self._col.find_one({"_id": task_id})
        return doc_to_task(doc) if doc else None

    def add_task(self, draft: TaskDraft) -> Task:
        now = self._clock.now()
        doc = {
            "_id": str(uuid.uuid4()),
            "title": draft.title,
            "description": draft.description,
            "dueDate": draft.due_date,
            "priority": draft.priority,
            "tags": list(draft.tags),
            "completed": False,
            "createdAt": now,
            "updatedAt": now,
        }
        self._col.insert_one(doc)
        logger.debug("Task added id=%s priority=%s due=%s", doc["_id"], draft.priority, draft.due_date)
        return doc_to_task(doc)

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]:
        updates = {}
        for attr, value in changes.items():
            if attr not in _FIELDS:
                raise KeyError(f"Unknown task field: {attr}")
            updates[_FIELDS[attr]] = list(value) if attr == "tags" else value
        updates["updatedAt"] = self._clock.now()

        res = self._col.find_one_and_update(
            {"_id": task_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return doc_to_task(res) if res else None

    def toggle_task(self, task_id: str) -> Optional[Task]:
        current = self._col.find_one({"_id": task_id}, {"completed": 1})
        if current is None:
            return None
        return self.update_task(task_id, {"completed": not bool(current.get("completed"))})

    def delete_task(self, task_id: str) -> bool:
        res = self._col.delete_one({"_id": task_id})
        return res.deleted_count > 0

    def set_completed(self, task_ids: Iterable[str], completed: bool) -> int:
        res = self._col.update_many(
            {"_id": {"$in": list(task_ids)}},
            {"$set": {"completed": bool(completed), "updatedAt": self._clock.now()}},
        )
        return res.matched_count

    def delete_tasks(self, task_ids: Iterable[str]) -> int:
        res = self._col.delete_many({"_id": {"$in": list(task_ids)}})
        return res.deleted_count
