import logging
from typing import Optional

import requests
from pydantic import ValidationError

from models.document import ProcessFileRequest, ProcessFileResponse
from services.errors import FunctionAppError

logger = logging.getLogger("services.function_app")

NGROK_WARNING = (
	"Ngrok browser warning page detected. Visit the Function App URL in a browser, "
	"click \"Visit Site\" to bypass the warning, then try again."
)


class FunctionAppClient:
	"""Client for the document formatting Function App."""

	def __init__(self, base_url: str, function_key: Optional[str] = None, timeout: float = 30.0, session: Optional[requests.Session] = None):
		if not base_url:
			raise ValueError("Function App URL is not configured")
		self.base_url = base_url.rstrip("/")
		self.function_key = function_key
		self.timeout = timeout
		self.session = session or requests.Session()

	@property
	def endpoint(self) -> str:
		return f"{self.base_url}/api/ProcessSharePointFile"

	def process_sharepoint_file(self, request: ProcessFileRequest) -> ProcessFileResponse:
		"""Trigger template formatting for an uploaded file."""
		headers = {
			"Content-Type": "application/json",
			# Ignored by everything except ngrok tunnels used for local runs
			"ngrok-skip-browser-warning": "true",
		}
		if self.function_key:
			headers["x-functions-key"] = self.function_key

		try:
			response = self.session.post(
				self.endpoint,
				json=request.model_dump(by_alias=True),
				headers=headers,
				timeout=self.timeout,
			)
		except requests.ConnectionError as exc:
			logger.error("function_app_unreachable", extra={"endpoint": self.endpoint})
			raise FunctionAppError(
				f"Cannot connect to Function App at {self.base_url}. Ensure it is running and reachable."
			) from exc
		except requests.Timeout as exc:
			logger.error("function_app_timeout", extra={"endpoint": self.endpoint})
			raise FunctionAppError(f"Function App did not respond within {self.timeout}s") from exc

		content_type = response.headers.get("Content-Type", "")
		if "text/html" in content_type:
			text = response.text or ""
			if "ngrok" in text or "browser warning" in text:
				raise FunctionAppError(NGROK_WARNING, status_code=response.status_code)

		if not response.ok:
			logger.warning("function_app_failed", extra={"status_code": response.status_code, "file_name": request.file_name})
			raise FunctionAppError(
				f"Template formatting failed ({response.status_code}): {(response.text or '')[:500]}",
				status_code=response.status_code,
			)

		try:
			result = ProcessFileResponse.model_validate(response.json())
		except (ValueError, ValidationError) as exc:
			raise FunctionAppError("Function App response did not include enrichedUrl") from exc

		logger.info("function_app_accepted", extra={"file_name": request.file_name})
		return result
