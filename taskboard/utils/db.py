import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from pymongo import MongoClient

from taskboard.models.task_model import TaskDraft, format_timestamp
from taskboard.stores.mongo_store import MongoTaskStore
from taskboard.stores.sqlite_store import SqliteTaskStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = "task_store"


def build_store(config):
    """Create the store named by ``TASK_STORE`` in a Flask config mapping."""
    kind = (config.get("TASK_STORE") or "sqlite").lower()
    if kind == "sqlite":
        return SqliteTaskStore(config.get("SQLITE_PATH", ":memory:"))
    if kind == "mongo":
        client = MongoClient(config["MONGO_URI"], serverSelectionTimeoutMS=2000)
        return MongoTaskStore(client[config.get("MONGO_DB_NAME", "taskboard")]["tasks"])
    raise ValueError(f"Unknown TASK_STORE {kind!r}; expected 'sqlite' or 'mongo'")


def seed_sample_tasks(store) -> int:
    """Insert a few sample tasks into an empty store; return how many."""
    if store.count_tasks() > 0:
        return 0
    tomorrow = format_timestamp(datetime.now(timezone.utc) + timedelta(days=1))
    samples = [
        TaskDraft(title="Complete project documentation", priority="high", due_date=tomorrow),
        TaskDraft(title="Review pull requests", priority="medium"),
        TaskDraft(title="Update dependencies", priority="low"),
    ]
    for draft in samples:
        store.add_task(draft)
    logger.info("Seeded %d sample tasks", len(samples))
    return len(samples)


def init_app(app, store=None):
    """Attach a task store to ``app``; an explicit ``store`` wins over config."""
    if store is None:
        store = build_store(app.config)
    app.extensions[EXTENSION_KEY] = store
    if app.config.get("SEED_SAMPLE_TASKS"):
        seed_sample_tasks(store)
    return store


def get_store():
    return current_app.extensions[EXTENSION_KEY]
