from taskboard.models.task_model import (  # noqa: F401
    BULK_ACTIONS,
    PRIORITIES,
    SORT_KEYS,
    STATUSES,
    Task,
    TaskDraft,
    ValidationError,
)
