import os
from typing import Optional


def _get_float(name: str, default: float) -> float:
	try:
		return float(os.getenv(name, str(default)))
	except ValueError:
		return default


def _get_int(name: str, default: int) -> int:
	try:
		return int(os.getenv(name, str(default)))
	except ValueError:
		return default


def get_site_url() -> str:
	return os.getenv("SHAREPOINT_SITE_URL", "").rstrip("/")


def get_sharepoint_token() -> Optional[str]:
	return os.getenv("SHAREPOINT_ACCESS_TOKEN") or None


def get_scratch_library() -> str:
	return os.getenv("SCRATCH_DOCS_LIBRARY", "ScratchDocs")


def get_processed_library() -> str:
	return os.getenv("PROCESSED_DOCS_LIBRARY", "ProcessedDocs")


def get_function_app_url() -> str:
	return os.getenv("FUNCTION_APP_URL", "").rstrip("/")


def get_function_app_key() -> Optional[str]:
	return os.getenv("FUNCTION_APP_KEY") or None


def get_http_timeout() -> float:
	return _get_float("HTTP_TIMEOUT_SECONDS", 30.0)


def get_max_upload_mb() -> int:
	return _get_int("MAX_UPLOAD_MB", 25)


def get_library_propagation_delay() -> float:
	return _get_float("LIBRARY_PROPAGATION_DELAY_SECONDS", 1.5)


def get_enriched_refresh_delay() -> float:
	return _get_float("ENRICHED_REFRESH_DELAY_SECONDS", 2.0)


def get_enriched_documents_top() -> int:
	return _get_int("ENRICHED_DOCUMENTS_TOP", 10)


def is_task_eager() -> bool:
	return os.getenv("CELERY_TASK_ALWAYS_EAGER", "0").lower() in ("1", "true", "yes")


def get_history_top() -> int:
	return _get_int("ENRICHMENT_HISTORY_TOP", 50)
