import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from models.document import EnrichedDocument, EnrichmentLogEntry
from services.errors import SharePointError

logger = logging.getLogger("services.sharepoint")

ODATA_JSON = "application/json;odata=nometadata"
DOCUMENT_LIBRARY_TEMPLATE = 101


def _odata_literal(value: str) -> str:
	# OData string literals escape a single quote by doubling it
	return value.replace("'", "''")


def _unwrap(data: Dict[str, Any]) -> Dict[str, Any]:
	"""Flatten the verbose ``{"d": {...}}`` wrapper when present."""
	if isinstance(data, dict) and isinstance(data.get("d"), dict):
		return data["d"]
	return data


def extract_form_digest(data: Dict[str, Any]) -> Optional[str]:
	"""Pull FormDigestValue out of any of the contextinfo response shapes."""
	if not isinstance(data, dict):
		return None
	info = data.get("GetContextWebInformation")
	if isinstance(info, dict) and info.get("FormDigestValue"):
		return info["FormDigestValue"]
	info = _unwrap(data).get("GetContextWebInformation")
	if isinstance(info, dict) and info.get("FormDigestValue"):
		return info["FormDigestValue"]
	return data.get("FormDigestValue") or None


def extract_results(data: Dict[str, Any]) -> List[Dict[str, Any]]:
	if not isinstance(data, dict):
		return []
	if isinstance(data.get("value"), list):
		return data["value"]
	inner = _unwrap(data)
	if isinstance(inner.get("results"), list):
		return inner["results"]
	return []


class SharePointClient:
	"""Thin wrapper over the SharePoint REST API of a single web."""

	def __init__(
		self,
		site_url: str,
		access_token: Optional[str] = None,
		timeout: float = 30.0,
		session: Optional[requests.Session] = None,
	):
		if not site_url:
			raise ValueError("SharePoint site URL is not configured")
		self.site_url = site_url.rstrip("/")
		self.timeout = timeout
		self.session = session or requests.Session()
		self.session.headers.update({"Accept": ODATA_JSON})
		if access_token:
			self.session.headers.update({"Authorization": f"Bearer {access_token}"})

	def _url(self, path: str) -> str:
		return f"{self.site_url}/{path.lstrip('/')}"

	def _request(self, method: str, path: str, action: str, ok_statuses=(), **kwargs) -> requests.Response:
		kwargs.setdefault("timeout", self.timeout)
		response = self.session.request(method, self._url(path), **kwargs)
		if response.ok or response.status_code in ok_statuses:
			return response
		text = (response.text or "")[:500]
		logger.warning(
			"sharepoint_request_failed",
			extra={"method": method, "endpoint": path.split("?", 1)[0], "status_code": response.status_code},
		)
		raise SharePointError(f"{action} failed ({response.status_code}): {text}", status_code=response.status_code)

	def _list_path(self, title: str) -> str:
		return f"_api/web/lists/getbytitle('{_odata_literal(title)}')"

	def list_exists(self, title: str) -> bool:
		response = self._request("GET", self._list_path(title), "List lookup", ok_statuses=(404,))
		return response.status_code != 404

	def get_request_digest(self) -> str:
		response = self._request("POST", "_api/contextinfo", "Request digest", data=b"")
		digest = extract_form_digest(self._json(response, "Request digest"))
		if not digest:
			raise SharePointError("Request digest not found in response")
		logger.debug("digest_acquired")
		return digest

	def create_document_library(self, title: str, description: str = "") -> Dict[str, Any]:
		digest = self.get_request_digest()
		body = {
			"Title": title,
			"Description": description,
			"BaseTemplate": DOCUMENT_LIBRARY_TEMPLATE,
			"ContentTypesEnabled": False,
		}
		response = self._request(
			"POST",
			"_api/web/lists",
			"Library creation",
			json=body,
			headers={"X-RequestDigest": digest, "Content-Type": ODATA_JSON},
		)
		logger.info("library_created", extra={"library": title})
		try:
			return _unwrap(response.json())
		except ValueError:
			return {}

	def ensure_library(self, title: str, description: str = "") -> bool:
		"""Create the document library when missing. Returns True if it was created."""
		if self.list_exists(title):
			return False
		self.create_document_library(title, description)
		return True

	def upload_file(self, library: str, file_name: str, content: bytes, digest: Optional[str] = None) -> Dict[str, Any]:
		digest = digest or self.get_request_digest()
		target = quote(_odata_literal(file_name), safe="")
		path = f"{self._list_path(library)}/RootFolder/Files/Add(url='{target}',overwrite=true)"
		response = self._request(
			"POST",
			path,
			"File upload",
			data=content,
			headers={"X-RequestDigest": digest, "Content-Type": "application/octet-stream"},
		)
		logger.info("file_uploaded", extra={"library": library, "file_name": file_name, "size_bytes": len(content)})
		try:
			return _unwrap(response.json())
		except ValueError:
			return {}

	def _json(self, response: requests.Response, action: str) -> Any:
		try:
			return response.json()
		except ValueError as exc:
			raise SharePointError(f"{action} returned a non-JSON body", status_code=response.status_code) from exc

	def _get_id(self, path: str, action: str) -> str:
		data = _unwrap(self._json(self._request("GET", f"{path}?$select=Id", action), action))
		if not isinstance(data, dict):
			raise SharePointError(f"{action} returned an unexpected body")
		value = data.get("Id") or data.get("value")
		if not value:
			raise SharePointError(f"{action} returned no Id")
		return str(value)

	def get_site_id(self) -> str:
		return self._get_id("_api/site", "Site lookup")

	def get_web_id(self) -> str:
		return self._get_id("_api/web", "Web lookup")

	def _parse_rows(self, model, rows: List[Dict[str, Any]], list_title: str) -> List[Any]:
		parsed = []
		for row in rows:
			try:
				parsed.append(model.model_validate(row))
			except ValidationError as exc:
				# Folders and rows with unparseable fields are not shown
				logger.warning("list_item_skipped", extra={"library": list_title, "error": str(exc.errors()[:1])})
		return parsed

	def get_recent_documents(self, list_title: str, top: int = 10) -> List[EnrichedDocument]:
		path = (
			f"{self._list_path(list_title)}/items"
			f"?$select=Id,Title,FileRef,Created&$top={int(top)}&$orderby=Created desc"
		)
		action = "Enriched documents query"
		response = self._request("GET", path, action)
		return self._parse_rows(EnrichedDocument, extract_results(self._json(response, action)), list_title)

	def get_enrichment_history(self, list_title: str, top: int = 50) -> List[EnrichmentLogEntry]:
		"""Formatting outcomes recorded on the processed list. A missing list means no history yet."""
		path = (
			f"{self._list_path(list_title)}/items"
			f"?$select=Id,Title,SMEPilot_Status,SMEPilot_EnrichedFileUrl,Modified&$orderby=Modified desc&$top={int(top)}"
		)
		action = "Enrichment history"
		response = self._request("GET", path, action, ok_statuses=(404,))
		if response.status_code == 404:
			logger.info("enrichment_history_missing_list", extra={"library": list_title})
			return []
		return self._parse_rows(EnrichmentLogEntry, extract_results(self._json(response, action)), list_title)
