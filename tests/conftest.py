import json
from unittest.mock import MagicMock

import pytest
import requests

from app import create_app
from spotify_auth import AuthGateway
from spotify_config import AppConfig

TOKEN_URL = "https://accounts.spotify.com/api/token"


@pytest.fixture
def static_dir(tmp_path):
    build = tmp_path / "build"
    (build / "static" / "js").mkdir(parents=True)
    (build / "index.html").write_text("<html><body>spotify profile</body></html>")
    (build / "static" / "js" / "main.js").write_text("console.log('main');")
    return build


@pytest.fixture
def config(static_dir):
    return AppConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        static_dir=str(static_dir),
    )


@pytest.fixture
def token_response():
    """Factory for the token endpoint's HTTP response."""

    def _make(status_code=200, payload=None):
        resp = requests.Response()
        resp.status_code = status_code
        resp.url = TOKEN_URL
        resp.encoding = "utf-8"
        resp.headers["Content-Type"] = "application/json"
        resp._content = json.dumps(payload if payload is not None else {}).encode()
        return resp

    return _make


@pytest.fixture
def session():
    """requests.Session whose POST never leaves the process."""
    s = requests.Session()
    s.post = MagicMock()
    return s


@pytest.fixture
def gateway(config, session):
    return AuthGateway(config, requests_session=session)


@pytest.fixture
def client(config, gateway):
    app = create_app(config, gateway=gateway)
    app.config["TESTING"] = True
    return app.test_client()
