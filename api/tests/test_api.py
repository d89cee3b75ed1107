"""
Tests for the HTTP surface

Tests cover:
1. Account routes and their error bodies
2. Credit routes
3. Restoration proxy route
4. Startup configuration
"""

import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.settings import ConfigurationError, Settings, load_settings


PNG_B64 = base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16).decode()


def make_settings(**overrides) -> Settings:
    values = {
        "provider_api_key": "test-key",
        "provider_base_url": "https://provider.test/v1",
        "database_path": ":memory:",
        "privileged_names": "root",
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


def provider_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": PNG_B64}}]})


@pytest.fixture
def client():
    app = create_app(make_settings(), provider_transport=httpx.MockTransport(provider_ok))
    with TestClient(app) as test_client:
        yield test_client


class TestSystemRoutes:
    """Tests for the liveness routes."""

    def test_root(self, client):
        """Test the root route answers with a plain-text banner."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "PhotoRevive AI Backend is running!"

    def test_health(self, client):
        """Test the health check payload."""
        assert client.get("/health").json() == {"status": "healthy", "service": "photorevive"}


class TestLoginRoute:
    """Tests for POST /login."""

    def test_login_creates_account(self, client):
        """Test first login creates an account and hides the internal id."""
        response = client.post("/login", json={"name": "Alice"})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"name", "credits", "referralCode", "referralCount"}
        assert body["name"] == "alice"
        assert body["credits"] == 50
        assert body["referralCount"] == 0
        assert body["referralCode"].startswith("ALICE")

    def test_login_missing_name(self, client):
        """Test a body without a name is a 400."""
        response = client.post("/login", json={})

        assert response.status_code == 400
        assert "name" in response.json()["message"]

    def test_login_blank_name(self, client):
        """Test a whitespace-only name is a 400."""
        response = client.post("/login", json={"name": "  "})

        assert response.status_code == 400
        assert "Name is required" in response.json()["message"]

    def test_login_with_referral(self, client):
        """Test a referred signup credits the referrer."""
        alice = client.post("/login", json={"name": "alice"}).json()

        bob = client.post("/login", json={"name": "bob", "referralCode": alice["referralCode"]})

        assert bob.status_code == 200
        assert bob.json()["credits"] == 50
        alice = client.get("/users/alice").json()
        assert alice["credits"] == 75
        assert alice["referralCount"] == 1

    def test_privileged_login(self, client):
        """Test an allow-listed name gets the forced balance."""
        response = client.post("/login", json={"name": "Root"})

        assert response.json()["credits"] == 999999

    def test_api_prefix_for_browser_client(self, client):
        """Test routes are also served under /api."""
        response = client.post("/api/login", json={"name": "alice"})

        assert response.status_code == 200
        assert response.json()["name"] == "alice"


class TestCreditRoutes:
    """Tests for POST /spend and POST /add-credits."""

    def test_spend(self, client):
        """Test a successful spend returns the updated account."""
        client.post("/login", json={"name": "alice"})

        response = client.post("/spend", json={"name": "alice", "amount": 10})

        assert response.status_code == 200
        assert response.json()["credits"] == 40

    def test_spend_insufficient(self, client):
        """Test overspending is a 400 and leaves the balance."""
        client.post("/login", json={"name": "alice"})

        response = client.post("/spend", json={"name": "alice", "amount": 500})

        assert response.status_code == 400
        assert response.json() == {"message": "Insufficient credits"}
        assert client.get("/users/alice").json()["credits"] == 50

    def test_spend_unknown_user(self, client):
        """Test spending for an unknown user is a 404."""
        response = client.post("/spend", json={"name": "ghost", "amount": 1})

        assert response.status_code == 404
        assert response.json() == {"message": "User not found"}

    @pytest.mark.parametrize("body", [
        {"name": "alice"},
        {"amount": 5},
        {"name": "alice", "amount": 0},
        {"name": "alice", "amount": -3},
    ])
    def test_spend_missing_fields(self, client, body):
        """Test missing or non-positive fields are a 400."""
        client.post("/login", json={"name": "alice"})

        response = client.post("/spend", json=body)

        assert response.status_code == 400
        assert response.json()["message"]

    @pytest.mark.parametrize("route", ["/spend", "/add-credits"])
    @pytest.mark.parametrize("amount", [True, 2.0, "3"])
    def test_non_integer_amount_rejected(self, client, route, amount):
        """Test booleans, floats and numeric strings aren't coerced into amounts."""
        client.post("/login", json={"name": "alice"})

        response = client.post(route, json={"name": "alice", "amount": amount})

        assert response.status_code == 400
        assert "amount" in response.json()["message"]
        assert client.get("/users/alice").json()["credits"] == 50

    def test_add_credits(self, client):
        """Test adding credits returns the updated account."""
        client.post("/login", json={"name": "alice"})

        response = client.post("/add-credits", json={"name": "alice", "amount": 100})

        assert response.status_code == 200
        assert response.json()["credits"] == 150

    def test_add_credits_unknown_user(self, client):
        """Test crediting an unknown user is a 404."""
        response = client.post("/add-credits", json={"name": "ghost", "amount": 100})

        assert response.status_code == 404

    def test_get_unknown_user(self, client):
        """Test looking up an unknown user is a 404."""
        assert client.get("/users/ghost").status_code == 404


class TestRestoreRoute:
    """Tests for POST /restore."""

    def test_restore_success(self, client):
        """Test a raw base64 provider reply becomes a PNG data URL."""
        response = client.post("/restore", json={
            "image": PNG_B64, "mimeType": "image/png", "prompt": "Restore this photo",
        })

        assert response.status_code == 200
        assert response.json() == {
            "imageUrl": f"data:image/png;base64,{PNG_B64}",
            "mimeType": "image/png",
        }

    @pytest.mark.parametrize("body", [
        {"mimeType": "image/png", "prompt": "Restore"},
        {"image": PNG_B64, "prompt": "Restore"},
        {"image": PNG_B64, "mimeType": "image/png"},
        {"image": "", "mimeType": "image/png", "prompt": "Restore"},
        {"image": "***not base64***", "mimeType": "image/png", "prompt": "Restore"},
        {"image": PNG_B64, "mimeType": "text/plain", "prompt": "Restore"},
    ])
    def test_restore_bad_request(self, client, body):
        """Test missing or malformed restore params are a 400."""
        response = client.post("/restore", json=body)

        assert response.status_code == 400
        assert response.json()["message"]

    def test_restore_provider_failure(self):
        """Test a provider error is a 500 and doesn't touch the ledger."""
        def failing(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": {"message": "Model overloaded"}})

        app = create_app(make_settings(), provider_transport=httpx.MockTransport(failing))
        with TestClient(app) as client:
            client.post("/login", json={"name": "alice"})
            response = client.post("/restore", json={
                "image": PNG_B64, "mimeType": "image/png", "prompt": "Restore",
            })
            balance = client.get("/users/alice").json()["credits"]

        assert response.status_code == 500
        assert response.json() == {"message": "Model overloaded", "providerStatus": 503}
        assert balance == 50

    def test_restore_sends_prompt_to_provider(self):
        """Test the prompt is forwarded to the provider."""
        seen = {}

        def recording(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return provider_ok(request)

        app = create_app(make_settings(), provider_transport=httpx.MockTransport(recording))
        with TestClient(app) as client:
            client.post("/restore", json={
                "image": PNG_B64, "mimeType": "image/png", "prompt": "Colorize",
            })

        assert seen["body"]["messages"][0]["content"][0]["text"] == "Colorize"


class TestConfiguration:
    """Tests for startup configuration."""

    def test_missing_provider_settings(self, monkeypatch):
        """Test missing provider credentials are a configuration error."""
        monkeypatch.delenv("PROVIDER_API_KEY", raising=False)
        monkeypatch.delenv("PROVIDER_BASE_URL", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        assert "PROVIDER_API_KEY" in str(exc_info.value)

    def test_blank_provider_key(self, monkeypatch):
        """Test a blank provider key is a configuration error."""
        monkeypatch.setenv("PROVIDER_API_KEY", "  ")
        monkeypatch.setenv("PROVIDER_BASE_URL", "https://provider.test")

        with pytest.raises(ConfigurationError):
            load_settings(_env_file=None)

    def test_create_app_without_settings_fails_fast(self, monkeypatch):
        """Test the app refuses to build without configuration."""
        monkeypatch.delenv("PROVIDER_API_KEY", raising=False)
        monkeypatch.delenv("PROVIDER_BASE_URL", raising=False)
        monkeypatch.chdir("/")

        with pytest.raises(ConfigurationError):
            create_app()

    def test_settings_from_environment(self, monkeypatch):
        """Test settings are read from the environment."""
        monkeypatch.setenv("PROVIDER_API_KEY", "env-key")
        monkeypatch.setenv("PROVIDER_BASE_URL", "https://provider.test")
        monkeypatch.setenv("PRIVILEGED_NAMES", "Root, admin ,")

        settings = load_settings(_env_file=None)

        assert settings.provider_api_key == "env-key"
        assert settings.privileged_name_list == ["Root", "admin"]
        assert settings.port == 3001
