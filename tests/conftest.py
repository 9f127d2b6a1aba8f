import os
import shutil
import tempfile
import importlib
import pytest
from fastapi.testclient import TestClient
import sys

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
	sys.path.insert(0, PROJECT_ROOT)

# Env must be in place before the Celery app and logging are imported
BASE_DIR = tempfile.mkdtemp(prefix="smepilot_tests_")
os.environ["STATE_DIR"] = os.path.join(BASE_DIR, "state")
os.environ["LOG_DIR"] = os.path.join(BASE_DIR, "logs")
os.environ["JWT_SECRET"] = "test_secret"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["SHAREPOINT_SITE_URL"] = "https://contoso.sharepoint.com/sites/team"
os.environ["FUNCTION_APP_URL"] = "https://smepilot-func.example.net"
os.environ["LIBRARY_PROPAGATION_DELAY_SECONDS"] = "0"
os.environ["ENRICHED_REFRESH_DELAY_SECONDS"] = "2"

SITE_URL = os.environ["SHAREPOINT_SITE_URL"]
FUNCTION_URL = os.environ["FUNCTION_APP_URL"]
USER_EMAIL = "alice@contoso.com"
TENANT_ID = "tenant-123"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class FakeResponse:
	def __init__(self, status_code=200, json_data=None, text=None, headers=None):
		self.status_code = status_code
		self._json = json_data
		self.headers = headers if headers is not None else {"Content-Type": "application/json"}
		self.text = text if text is not None else (str(json_data) if json_data is not None else "")

	@property
	def ok(self):
		return 200 <= self.status_code < 400

	def json(self):
		if self._json is None:
			raise ValueError("No JSON body")
		return self._json


class FakeSession:
	"""Stands in for requests.Session; routes match on method and a URL fragment."""

	def __init__(self, routes=None):
		self.headers = {}
		self.routes = list(routes or [])
		self.calls = []

	def route(self, method, fragment, response):
		# Later routes win
		self.routes.insert(0, (method, fragment, response))

	def request(self, method, url, **kwargs):
		self.calls.append({"method": method, "url": url, **kwargs})
		for route_method, fragment, response in self.routes:
			if route_method == method and fragment in url:
				if isinstance(response, Exception):
					raise response
				return response
		return FakeResponse(404, text="Not Found")

	def get(self, url, **kwargs):
		return self.request("GET", url, **kwargs)

	def post(self, url, **kwargs):
		return self.request("POST", url, **kwargs)

	def calls_to(self, method, fragment):
		return [c for c in self.calls if c["method"] == method and fragment in c["url"]]


def sharepoint_routes():
	return [
		("GET", "getbytitle('ProcessedDocs')/items", FakeResponse(200, {
			"value": [
				{"Id": 7, "Title": "Policy (formatted)", "FileRef": "/sites/team/ProcessedDocs/policy.docx", "Created": "2024-05-02T10:00:00Z"},
				{"Id": 6, "Title": None, "FileRef": "/sites/team/ProcessedDocs/notes.docx", "Created": "2024-05-01T09:00:00Z"},
			]
		})),
		("GET", "getbytitle('ScratchDocs')", FakeResponse(200, {"Id": "lib-guid", "Title": "ScratchDocs"})),
		("POST", "_api/contextinfo", FakeResponse(200, {"FormDigestValue": "digest-abc"})),
		("POST", "/RootFolder/Files/Add(", FakeResponse(200, {"ServerRelativeUrl": "/sites/team/ScratchDocs/report.docx"})),
		("POST", "_api/web/lists", FakeResponse(201, {"Id": "new-lib-guid"})),
		("GET", "_api/site?$select=Id", FakeResponse(200, {"Id": "site-guid"})),
		("GET", "_api/web?$select=Id", FakeResponse(200, {"Id": "web-guid"})),
	]


def function_app_routes():
	return [
		("POST", "/api/ProcessSharePointFile", FakeResponse(200, {"enrichedUrl": "https://contoso.sharepoint.com/sites/team/ProcessedDocs/report.docx"})),
	]


def make_token(email=USER_EMAIL, tenant_id=TENANT_ID):
	from utils.jwt import create_access_token
	claims = {"sub": email}
	if tenant_id:
		claims["tid"] = tenant_id
	return create_access_token(claims)


def auth_headers(email=USER_EMAIL):
	return {"Authorization": f"Bearer {make_token(email)}"}


@pytest.fixture(scope="session", autouse=True)
def temp_dirs():
	yield {"base": BASE_DIR, "state": os.environ["STATE_DIR"], "logs": os.environ["LOG_DIR"]}
	shutil.rmtree(BASE_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_state(temp_dirs):
	shutil.rmtree(temp_dirs["state"], ignore_errors=True)
	yield


@pytest.fixture
def sp_session():
	return FakeSession(sharepoint_routes())


@pytest.fixture
def fa_session():
	return FakeSession(function_app_routes())


@pytest.fixture
def scheduled():
	return []


@pytest.fixture
def upload_service(sp_session, fa_session, scheduled):
	from services.function_app import FunctionAppClient
	from services.sharepoint import SharePointClient
	from services.uploader import DocumentUploadService

	return DocumentUploadService(
		SharePointClient(SITE_URL, "sp-token", session=sp_session),
		FunctionAppClient(FUNCTION_URL, session=fa_session),
		library="ScratchDocs",
		processed_library="ProcessedDocs",
		schedule_refresh=lambda email, delay: scheduled.append((email, delay)),
		propagation_delay=0,
		refresh_delay=2.0,
	)


@pytest.fixture(scope="session")
def app_module():
	import main as main_module
	importlib.reload(main_module)
	return main_module


@pytest.fixture
def app_client(app_module, upload_service):
	from routers.documents import get_upload_service
	app = app_module.app
	app.dependency_overrides[get_upload_service] = lambda: upload_service
	client = TestClient(app)
	yield client
	app.dependency_overrides.clear()
