from flask import Blueprint, current_app, jsonify, request

from taskboard.models.task_model import (
    SORT_KEYS,
    STATUSES,
    ValidationError,
    validate_bulk_request,
    validate_new_task,
    validate_task_updates,
)
from taskboard.utils.db import get_store


tasks_bp = Blueprint("tasks", __name__)


@tasks_bp.errorhandler(ValidationError)
def handle_validation_error(exc):
    return jsonify(error=exc.message), 400


def _not_found():
    return jsonify(error="Task not found"), 404


def _json_body():
    # A missing or malformed body is validated as an empty object.
    payload = request.get_json(silent=True)
    return {} if payload is None else payload


@tasks_bp.get("")
def list_tasks():
    args = request.args
    status = args.get("status")
    sort_by = args.get("sortBy")
    tasks = get_store().list_tasks(
        status=status if status in STATUSES else "all",
        priority=args.get("priority") or None,
        search=args.get("search") or None,
        sort_by=sort_by if sort_by in SORT_KEYS else "default",
    )
    return jsonify([t.to_dict() for t in tasks]), 200


@tasks_bp.post("")
def create_task():
    draft = validate_new_task(_json_body())
    created = get_store().add_task(draft)
    current_app.logger.info("Created task %s", created.id)
    return jsonify(created.to_dict()), 201


@tasks_bp.put("/<task_id>")
def update_task(task_id):
    store = get_store()
    if store.get_task(task_id) is None:
        return _not_found()
    updates = validate_task_updates(_json_body())
    updated = store.update_task(task_id, updates)
    # Deleted by another request between the lookup and the write.
    if updated is None:
        return _not_found()
    return jsonify(updated.to_dict()), 200


@tasks_bp.patch("/<task_id>/toggle")
def toggle_task(task_id):
    toggled = get_store().toggle_task(task_id)
    if toggled is None:
        return _not_found()
    return jsonify(toggled.to_dict()), 200


@tasks_bp.delete("/<task_id>")
def delete_task(task_id):
    if not get_store().delete_task(task_id):
        return _not_found()
    current_app.logger.info("Deleted task %s", task_id)
    return jsonify(message="Task deleted successfully", id=task_id), 200


@tasks_bp.post("/bulk")
def bulk_action():
    action, task_ids = validate_bulk_request(_json_body())
    store = get_store()
    count = len(task_ids)
    if action == "delete":
        affected = store.delete_tasks(task_ids)
        message = f"{count} tasks deleted"
    else:
        affected = store.set_completed(task_ids, action == "complete")
        message = f"{count} tasks updated"
    current_app.logger.info("Bulk %s requested=%d affected=%d", action, count, affected)
    return jsonify(message=message, count=count), 200
