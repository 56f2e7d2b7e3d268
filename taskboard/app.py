import logging
import os
import time

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException


def create_app(config_object="taskboard.config.Config", store=None):
    """Application factory.

    ``store`` lets callers inject a ready task store (tests, embedding);
    otherwise one is built from ``TASK_STORE`` in the config.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = False
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("taskboard").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Core extensions
    CORS(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    from taskboard.utils.db import get_store, init_app as init_db

    init_db(app, store)

    from taskboard.routes.task_routes import tasks_bp

    app.register_blueprint(tasks_bp, url_prefix="/api/tasks")

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        app.logger.info("%s %s %s %.1fms", request.method, request.full_path.rstrip("?"),
                        response.status_code, elapsed_ms)
        return response

    @app.get("/api/health")
    def health():
        try:
            total = get_store().count_tasks()
        except Exception as exc:  # noqa: BLE001
            app.logger.exception("Task store health check failed: %s", exc)
            return jsonify(status="unavailable", service="Taskboard API"), 503
        return jsonify(status="ok", service="Taskboard API", tasks=total), 200

    @app.errorhandler(HTTPException)
    def http_error(exc):
        # Routing redirects are HTTPExceptions too; let them through.
        if exc.code is None or exc.code < 400:
            return exc
        return jsonify(error=exc.name), exc.code

    @app.errorhandler(Exception)
    def server_error(exc):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(error="Internal Server Error"), 500

    return app


if __name__ == "__main__":
    # Direct run support: python -m taskboard.app
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
    create_app().run(
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "5000")),
        debug=os.environ.get("FLASK_DEBUG", "1") == "1",
    )
