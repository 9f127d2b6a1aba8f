from celery import Celery
import os
from utils.config import is_task_eager
from utils.logging_config import init_worker_logging

CELERY_BROKER_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

celery_app = Celery(
    "smepilot_uploader",
    broker=CELERY_BROKER_URL,
    backend=CELERY_BROKER_URL,
    include=["tasks.celery_tasks"],
)

celery_app.conf.update(
    task_always_eager=is_task_eager(),
    task_eager_propagates=True,
    task_ignore_result=True,
)

# Initialize logging for worker
init_worker_logging()
