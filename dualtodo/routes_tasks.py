"""
JSON CRUD over a single store: ``/tasks`` talks to MongoDB only and
``/tasks-pg`` to the relational store only. Neither goes through the
dual-write path.
"""
from flask import Blueprint, jsonify

from .errors import NotFoundError
from .extensions import get_coordinator
from .rate_limit import api_limit
from .schemas.tasks import validate_title
from .utils.payload import request_data


def task_blueprint(name: str, url_prefix: str, store_attr: str) -> Blueprint:
    bp = Blueprint(name, __name__, url_prefix=url_prefix)

    def _store():
        return getattr(get_coordinator(), store_attr)

    @bp.get("")
    @api_limit
    def list_tasks():
        return jsonify(tasks=_store().list_tasks()), 200

    @bp.post("")
    @api_limit
    def add_task():
        title = validate_title(request_data())
        return jsonify(task=_store().insert_task(title)), 201

    @bp.delete("/<task_id>")
    @api_limit
    def remove_task(task_id):
        task = _store().delete_task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return jsonify(message="Task removed", task=task), 200

    return bp


tasks_bp = task_blueprint("tasks", "/tasks", "document")
tasks_pg_bp = task_blueprint("tasks_pg", "/tasks-pg", "relational")
