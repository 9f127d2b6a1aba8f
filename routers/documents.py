from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Security
from starlette.concurrency import run_in_threadpool
from models.user import UserContext
from services.uploader import DocumentUploadService, build_upload_service
from tasks.celery_tasks import schedule_enriched_refresh
from utils import config, status_store
from utils.response import api_response
from utils.jwt import get_current_user
import logging

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger("api.documents")

SUPPORTED_FORMATS = ["docx"]
DOCX_MIMES = [
	"application/vnd.openxmlformats-officedocument.wordprocessingml.document",
	# Browsers and curl often fall back to these
	"application/octet-stream",
	"application/zip",
]


def get_upload_service() -> DocumentUploadService:
	try:
		return build_upload_service(schedule_refresh=schedule_enriched_refresh)
	except ValueError as exc:
		logger.error("upload_service_misconfigured", extra={"error": str(exc)})
		raise HTTPException(status_code=503, detail=str(exc))


def validate_file_extension(filename: str):
	ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
	if ext not in SUPPORTED_FORMATS:
		logger.warning("upload_unsupported_extension", extra={"file_name": filename})
		raise HTTPException(status_code=400, detail="Only .docx files are supported")
	return ext


def validate_file_upload(file: UploadFile):
	if not file.filename:
		raise HTTPException(status_code=400, detail="File name is required")
	ext = validate_file_extension(file.filename)
	if file.content_type and file.content_type not in DOCX_MIMES:
		logger.warning("upload_unsupported_mime", extra={"file_name": file.filename})
		raise HTTPException(status_code=400, detail="Unsupported MIME type")
	return ext


@router.post("/upload")
async def upload_document(
	file: UploadFile = File(...),
	user: UserContext = Security(get_current_user),
	service: DocumentUploadService = Depends(get_upload_service),
):
	validate_file_upload(file)

	content = await file.read()
	size_bytes = len(content)
	if size_bytes == 0:
		raise HTTPException(status_code=400, detail="File is empty")
	limit_mb = config.get_max_upload_mb()
	size_mb = size_bytes / (1024 * 1024)
	if size_mb > limit_mb:
		logger.warning("upload_too_large", extra={"file_name": file.filename, "size_bytes": size_bytes})
		raise HTTPException(status_code=400, detail=f"File too large. Max {limit_mb}MB allowed")

	# Blocking network chain, keep it off the event loop
	state = await run_in_threadpool(service.upload, user, file.filename, content)

	if state.status == "success":
		return api_response(data=state.model_dump(), message=state.message, status_code=201)
	return api_response(data=state.model_dump(), message=state.message, status_code=502)


@router.get("/status")
def get_status(user: UserContext = Security(get_current_user)):
	state = status_store.get_upload_state(user.email)
	return api_response(data=state.model_dump(), message=state.message or "No upload in progress.")


@router.get("/enriched")
def list_enriched_documents(
	user: UserContext = Security(get_current_user),
	service: DocumentUploadService = Depends(get_upload_service),
):
	"""Recently enriched documents, loaded from SharePoint on first access."""
	documents = service.get_enriched_documents(user.email)
	return api_response(
		data={"items": [doc.model_dump() for doc in documents], "total": len(documents)},
		message="Enriched documents fetched successfully.",
	)


@router.post("/enriched/refresh")
def refresh_enriched_documents(
	user: UserContext = Security(get_current_user),
	service: DocumentUploadService = Depends(get_upload_service),
):
	documents = service.load_enriched_documents(user.email)
	return api_response(
		data={"items": [doc.model_dump() for doc in documents], "total": len(documents)},
		message="Enriched documents refreshed.",
	)


@router.get("/history")
def get_enrichment_history(
	user: UserContext = Security(get_current_user),
	service: DocumentUploadService = Depends(get_upload_service),
):
	"""Formatting history from the processed documents list, newest first."""
	entries = service.get_enrichment_history()
	logger.info("history_listed", extra={"count": len(entries)})
	return api_response(
		data={"items": [entry.model_dump() for entry in entries], "total": len(entries)},
		message="Enrichment history fetched successfully.",
	)
