import pytest
import requests
from conftest import FakeResponse, FakeSession, FUNCTION_URL, function_app_routes
from models.document import ProcessFileRequest
from services.errors import FunctionAppError
from services.function_app import FunctionAppClient


def _request():
	return ProcessFileRequest(site_id="s", drive_id="w", file_name="a.docx", uploader_email="a@b.com", tenant_id="t")


def test_process_file_posts_descriptor():
	session = FakeSession(function_app_routes())
	client = FunctionAppClient(FUNCTION_URL + "/", function_key="key-1", session=session)
	result = client.process_sharepoint_file(_request())
	assert result.enriched_url.endswith("report.docx")
	call = session.calls[0]
	assert call["url"] == f"{FUNCTION_URL}/api/ProcessSharePointFile"
	assert call["headers"]["x-functions-key"] == "key-1"
	assert call["json"]["itemId"] == "temp"


def test_default_tenant_and_item():
	req = ProcessFileRequest(site_id="s", drive_id="w", file_name="a.docx")
	assert req.model_dump(by_alias=True)["tenantId"] == "default"
	assert req.item_id == "temp"


def test_ngrok_warning_page_detected():
	session = FakeSession([
		("POST", "/api/ProcessSharePointFile", FakeResponse(200, text="<html>ngrok browser warning</html>", headers={"Content-Type": "text/html; charset=utf-8"})),
	])
	client = FunctionAppClient(FUNCTION_URL, session=session)
	with pytest.raises(FunctionAppError, match="Ngrok browser warning page detected"):
		client.process_sharepoint_file(_request())


def test_error_status_includes_body():
	session = FakeSession([
		("POST", "/api/ProcessSharePointFile", FakeResponse(400, text="fileName missing", headers={"Content-Type": "text/plain"})),
	])
	client = FunctionAppClient(FUNCTION_URL, session=session)
	with pytest.raises(FunctionAppError) as excinfo:
		client.process_sharepoint_file(_request())
	assert str(excinfo.value) == "Template formatting failed (400): fileName missing"
	assert excinfo.value.status_code == 400


def test_missing_enriched_url():
	session = FakeSession([("POST", "/api/ProcessSharePointFile", FakeResponse(200, {"status": "queued"}))])
	client = FunctionAppClient(FUNCTION_URL, session=session)
	with pytest.raises(FunctionAppError, match="enrichedUrl"):
		client.process_sharepoint_file(_request())


def test_connection_error_is_descriptive():
	session = FakeSession([("POST", "/api/ProcessSharePointFile", requests.ConnectionError("refused"))])
	client = FunctionAppClient(FUNCTION_URL, session=session)
	with pytest.raises(FunctionAppError, match="Cannot connect to Function App"):
		client.process_sharepoint_file(_request())
