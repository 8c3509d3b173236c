"""Pytest shared fixtures for the HSDP client tests."""
import json
import pathlib
import sys
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urlparse

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives import serialization

from hsdp.config import IAMConfig
from hsdp.iam import IAMClient

TOKEN = "44d20214-7879-4e35-923d-f9d4e01c9746"
REFRESH_TOKEN = "31f1a449-ef8e-4bfc-a227-4f2353fde547"
IAM_URL = "https://iam.test"
IDM_URL = "https://idm.test"
NOTIFICATION_URL = "https://notification.test"
CDR_URL = "https://cdr.test"

StubResult = Tuple[int, Any, Optional[Dict[str, str]]]
Handler = Union[StubResult, Callable[[requests.PreparedRequest], StubResult]]


# ─────────────────────────────────────────────────────────────────────────────
# Fake transport
# ─────────────────────────────────────────────────────────────────────────────
class StubAdapter(BaseAdapter):
    """requests transport adapter that answers from registered routes.

    Routes are keyed by (method, path). A handler is either a
    ``(status, body, headers)`` tuple or a callable receiving the prepared
    request and returning such a tuple. Dict/list bodies are JSON encoded.
    """

    def __init__(self):
        super().__init__()
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.calls: List[requests.PreparedRequest] = []
        self._lock = threading.Lock()

    def add(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls_to(self, method: str, path: str) -> List[requests.PreparedRequest]:
        return [c for c in self.calls if c.method == method.upper() and urlparse(c.url).path == path]

    def send(self, request, **kwargs):
        with self._lock:
            self.calls.append(request)
        key = (request.method, urlparse(request.url).path)
        if key not in self.routes:
            raise AssertionError(f"Unexpected HTTP {request.method} in unit test: {request.url}")
        handler = self.routes[key]
        status, body, headers = handler(request) if callable(handler) else handler
        return self.build_response(request, status, body, headers)

    @staticmethod
    def build_response(request, status: int, body: Any = None, headers: Optional[Dict[str, str]] = None):
        resp = requests.Response()
        resp.status_code = status
        if isinstance(body, (dict, list)):
            resp._content = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            resp._content = body.encode("utf-8")
        else:
            resp._content = body or b""
        resp.headers = CaseInsensitiveDict(headers or {})
        resp.request = request
        resp.url = request.url
        resp.reason = "stub"
        return resp

    def close(self):
        pass


def form_body(request: requests.PreparedRequest) -> Dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    body = request.body or ""
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    return {k: v[0] for k, v in parse_qs(body).items()}


def json_body(request: requests.PreparedRequest) -> Any:
    return json.loads(request.body)


def token_payload(access_token: str = TOKEN, refresh_token: str = REFRESH_TOKEN, expires_in: int = 1799) -> dict:
    payload = {
        "scope": "mail tdr.contract tdr.dataitem",
        "access_token": access_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
    }
    if refresh_token:
        payload["refresh_token"] = refresh_token
    return payload


@pytest.fixture()
def stub():
    return StubAdapter()


@pytest.fixture()
def session(stub):
    s = requests.Session()
    s.mount("https://", stub)
    s.mount("http://", stub)
    return s


@pytest.fixture()
def iam_config():
    return IAMConfig(
        iam_url=IAM_URL,
        idm_url=IDM_URL,
        oauth2_client_id="TestClient",
        oauth2_secret="Secret",
        shared_key="SharedKey",
        secret_key="SecretKey",
    )


@pytest.fixture()
def iam_client(iam_config, session, stub):
    """IAM client logged in against the stub token endpoint."""
    stub.add("POST", "/authorize/oauth2/token", (200, token_payload(), None))
    client = IAMClient(iam_config, session=session)
    client.login("username", "password")
    return client


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for service identity tests
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return {
        "private_pem": private_pem.decode("ascii"),
        "public_pem": public_pem.decode("ascii"),
    }


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires live HSDP endpoints)"
    )
