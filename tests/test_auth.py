from fastapi.testclient import TestClient
from conftest import auth_headers, make_token
from utils.jwt import user_from_claims, verify_access_token


def test_status_requires_auth(app_client: TestClient):
	resp = app_client.get("/documents/status")
	assert resp.status_code == 401
	assert resp.json()["message"] == "Missing Authorization header"


def test_invalid_token_rejected(app_client: TestClient):
	resp = app_client.get("/documents/status", headers={"Authorization": "Bearer not-a-jwt"})
	assert resp.status_code == 401
	assert resp.json()["message"] == "Invalid token"


def test_token_claims_resolve_user():
	payload = verify_access_token(make_token("bob@contoso.com", "tid-9"))
	user = user_from_claims(payload)
	assert user.email == "bob@contoso.com"
	assert user.tenant_id == "tid-9"


def test_email_claim_preferred_over_subject():
	user = user_from_claims({"sub": "object-id", "email": "carol@contoso.com"})
	assert user.email == "carol@contoso.com"
	assert user.tenant_id is None
	assert user_from_claims({"tid": "x"}) is None


def test_initial_status_is_idle(app_client: TestClient):
	resp = app_client.get("/documents/status", headers=auth_headers())
	assert resp.status_code == 200
	data = resp.json()["data"]
	assert data["status"] == "idle"
	assert data["message"] == ""
