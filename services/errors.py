from typing import Optional


class UploadError(Exception):
	"""Base class for failures of a remote call in the upload chain."""

	def __init__(self, message: str, status_code: Optional[int] = None):
		super().__init__(message)
		self.message = message
		self.status_code = status_code

	def __str__(self) -> str:
		return self.message


class SharePointError(UploadError):
	pass


class FunctionAppError(UploadError):
	pass


PERMISSION_MARKERS = ("403", "unauthorized", "permission")


def is_permission_error(reason: str) -> bool:
	lowered = reason.lower()
	return any(marker in lowered for marker in PERMISSION_MARKERS)
