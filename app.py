import logging
import os

from taskboard.app import create_app
from taskboard.utils.db import get_store

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Expose a module-level `app` for WSGI servers (gunicorn expects `app:app`).
app = create_app()

with app.app_context():
    app.logger.info(
        "Task store %s ready with %d tasks",
        app.config["TASK_STORE"],
        get_store().count_tasks(),
    )


if __name__ == "__main__":
    # Local development only: run the built-in server.
    port = int(os.environ.get("PORT", 5000))
    app.run(host=os.environ.get("HOST", "0.0.0.0"), port=port, debug=app.config["DEBUG"])
