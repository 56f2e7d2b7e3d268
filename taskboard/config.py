import os

# Load .env from the working directory so local settings are picked up
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    return os.environ.get(name, default) == "1"


class Config:
    TASK_STORE = os.environ.get("TASK_STORE", "sqlite")
    SQLITE_PATH = os.environ.get("SQLITE_PATH", ":memory:")

    MONGO_URI = os.environ.get("MONGO_URI", "mongodb://localhost:27017/?directConnection=true")
    MONGO_DB_NAME = os.environ.get("MONGO_DB_NAME", "taskboard")

    SEED_SAMPLE_TASKS = _flag("SEED_SAMPLE_TASKS", "1")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    DEBUG = _flag("FLASK_DEBUG", "1")
    TESTING = False


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    TASK_STORE = "sqlite"
    SQLITE_PATH = ":memory:"
    SEED_SAMPLE_TASKS = False
    LOG_LEVEL = "WARNING"


class ClientConfig:
    API_URL = os.environ.get("TASKBOARD_API_URL", "http://127.0.0.1:5000/api")
    TIMEOUT = float(os.environ.get("TASKBOARD_API_TIMEOUT", "10"))
