from .celery_app import celery_app
from services.uploader import build_upload_service
import logging

logger = logging.getLogger("tasks.documents")


@celery_app.task
def refresh_enriched_documents_task(email):
	logger.info("refresh_started")
	documents = build_upload_service().load_enriched_documents(email)
	logger.info("refresh_completed", extra={"count": len(documents)})
	return len(documents)


def schedule_enriched_refresh(email: str, delay_seconds: float) -> None:
	"""Re-read the processed documents list once the Function App has had time to write it."""
	refresh_enriched_documents_task.apply_async(args=[email], countdown=delay_seconds)
