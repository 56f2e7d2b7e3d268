from taskboard.client.api_client import ApiError, TaskApiClient  # noqa: F401
from taskboard.client.task_state import TaskFilters, TaskState  # noqa: F401
