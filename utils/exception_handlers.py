import logging
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from typing import Any, Dict

from services.errors import UploadError
from utils.response import api_response

logger = logging.getLogger("api.errors")


def install_exception_handlers(app: FastAPI) -> None:
	@app.exception_handler(HTTPException)
	async def http_exception_handler(request: Request, exc: HTTPException):
		logger.warning(
			"http_exception",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": exc.status_code,
			}
		)
		return api_response(data=None, message=str(exc.detail or "HTTP error"), status_code=exc.status_code)

	@app.exception_handler(RequestValidationError)
	async def validation_exception_handler(request: Request, exc: RequestValidationError):
		errors = exc.errors()
		logger.warning(
			"validation_error",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
				"count": len(errors),
			}
		)
		content: Dict[str, Any] = {"errors": errors}
		return JSONResponse(
			status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
			content={
				"data": jsonable_encoder(content),
				"message": "Validation error",
				"status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
			},
		)

	@app.exception_handler(UploadError)
	async def upload_error_handler(request: Request, exc: UploadError):
		# Remote SharePoint/Function App failures that escaped the upload chain
		logger.warning(
			"remote_call_failed",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": exc.status_code,
				"error": exc.message,
			}
		)
		return api_response(data=None, message=exc.message, status_code=status.HTTP_502_BAD_GATEWAY)

	@app.exception_handler(Exception)
	async def generic_exception_handler(request: Request, exc: Exception):
		# Do not expose internal details to clients
		logger.error(
			"unhandled_exception",
			exc_info=True,
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
			}
		)
		return api_response(data=None, message="Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
