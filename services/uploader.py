import logging
import time
from typing import Callable, List, Optional

import requests
from kombu.exceptions import OperationalError

from models.document import EnrichedDocument, EnrichmentLogEntry, ProcessFileRequest, UploadState
from models.user import UserContext
from services.errors import UploadError, is_permission_error
from services.function_app import FunctionAppClient
from services.sharepoint import SharePointClient
from utils import config, status_store

logger = logging.getLogger("services.uploader")

RefreshScheduler = Callable[[str, float], None]


def friendly_reason(reason: str, library: str) -> str:
	if is_permission_error(reason):
		return (
			f"You do not have permission to upload to '{library}'. "
			"Ask a site owner for contribute access to the library."
		)
	return reason


class DocumentUploadService:
	"""Runs the upload chain for one file and mirrors progress into the caller's state."""

	def __init__(
		self,
		sharepoint: SharePointClient,
		function_app: FunctionAppClient,
		library: str,
		processed_library: str,
		schedule_refresh: Optional[RefreshScheduler] = None,
		propagation_delay: float = 1.5,
		refresh_delay: float = 2.0,
		documents_top: int = 10,
		history_top: int = 50,
	):
		self.sharepoint = sharepoint
		self.function_app = function_app
		self.library = library
		self.processed_library = processed_library
		self.schedule_refresh = schedule_refresh
		self.propagation_delay = propagation_delay
		self.refresh_delay = refresh_delay
		self.documents_top = documents_top
		self.history_top = history_top

	def upload(self, user: UserContext, file_name: str, content: bytes) -> UploadState:
		email = user.email
		status_store.set_upload_state(email, "uploading", "Uploading document to SharePoint...", file_name=file_name)
		logger.info("upload_started", extra={"file_name": file_name, "library": self.library, "size_bytes": len(content)})

		try:
			if self.sharepoint.ensure_library(self.library, "Documents uploaded for template formatting"):
				# Newly created lists are not immediately writable
				time.sleep(self.propagation_delay)
			digest = self.sharepoint.get_request_digest()
			self.sharepoint.upload_file(self.library, file_name, content, digest=digest)

			status_store.set_upload_state(email, "uploading", "File uploaded. Triggering enrichment...", file_name=file_name)

			request = ProcessFileRequest(
				site_id=self.sharepoint.get_site_id(),
				drive_id=self.sharepoint.get_web_id(),
				file_name=file_name,
				uploader_email=email,
				tenant_id=user.tenant_id or "default",
			)
			response = self.function_app.process_sharepoint_file(request)
		except (UploadError, requests.RequestException) as exc:
			reason = friendly_reason(str(exc), self.library)
			logger.warning("upload_failed", extra={"file_name": file_name, "error": str(exc)})
			return status_store.set_upload_state(email, "error", f"Upload failed: {reason}", file_name=file_name)
		except Exception as exc:
			# Never leave the caller looking at "uploading"
			logger.error("upload_crashed", exc_info=True, extra={"file_name": file_name})
			status_store.set_upload_state(email, "error", f"Upload failed: {exc}", file_name=file_name)
			raise

		state = status_store.set_upload_state(
			email,
			"success",
			f'Document "{file_name}" uploaded and enrichment started! Enriched document: {response.enriched_url}',
			file_name=file_name,
			enriched_url=response.enriched_url,
		)
		logger.info("upload_completed", extra={"file_name": file_name})

		if self.schedule_refresh is not None:
			try:
				self.schedule_refresh(email, self.refresh_delay)
			except OperationalError as exc:
				# The refresh is a convenience; the upload itself already went through
				logger.warning("enriched_refresh_schedule_failed", extra={"error": str(exc)})
			else:
				logger.info("enriched_refresh_scheduled", extra={"delay_seconds": self.refresh_delay})
		return state

	def load_enriched_documents(self, email: str) -> List[EnrichedDocument]:
		"""Refresh the cached list; on failure keep whatever was cached before."""
		try:
			documents = self.sharepoint.get_recent_documents(self.processed_library, self.documents_top)
		except (UploadError, requests.RequestException) as exc:
			# The processed list may not exist until the first document is formatted
			logger.info("enriched_documents_unavailable", extra={"library": self.processed_library, "error": str(exc)})
			return status_store.get_enriched_documents(email) or []
		status_store.set_enriched_documents(email, documents)
		logger.info("enriched_documents_loaded", extra={"count": len(documents)})
		return documents

	def get_enriched_documents(self, email: str) -> List[EnrichedDocument]:
		cached = status_store.get_enriched_documents(email)
		if cached is None:
			return self.load_enriched_documents(email)
		return cached

	def get_enrichment_history(self) -> List[EnrichmentLogEntry]:
		# Unlike the enriched documents panel, failures here reach the caller
		return self.sharepoint.get_enrichment_history(self.processed_library, self.history_top)


def build_upload_service(schedule_refresh: Optional[RefreshScheduler] = None) -> DocumentUploadService:
	timeout = config.get_http_timeout()
	sharepoint = SharePointClient(config.get_site_url(), config.get_sharepoint_token(), timeout=timeout)
	function_app = FunctionAppClient(config.get_function_app_url(), config.get_function_app_key(), timeout=timeout)
	return DocumentUploadService(
		sharepoint,
		function_app,
		library=config.get_scratch_library(),
		processed_library=config.get_processed_library(),
		schedule_refresh=schedule_refresh,
		propagation_delay=config.get_library_propagation_delay(),
		refresh_delay=config.get_enriched_refresh_delay(),
		documents_top=config.get_enriched_documents_top(),
		history_top=config.get_history_top(),
	)
