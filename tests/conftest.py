"""
Pytest configuration and fixtures for Card Press Backend tests.
"""

import json
import os
import shutil
import tempfile
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["CLIENT_ID"] = "test-client-id"
os.environ["CLIENT_SECRET"] = "test-client-secret"
os.environ["S3_BUCKET_NAME"] = "test-bucket"
os.environ["TEMPLATE_HREF"] = "https://test-bucket.s3.amazonaws.com/templates/license.psd"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="card_test_uploads_")
os.environ["RESPONSES_DIR"] = tempfile.mkdtemp(prefix="card_test_responses_")
os.environ["STOCK_PHOTO_DIR"] = tempfile.mkdtemp(prefix="card_test_photos_")
os.environ["STATIC_DIR"] = os.path.join(os.environ["UPLOAD_DIR"], "no-static")

from card_press_backend.asset_store import S3AssetStore
from card_press_backend.configuration import load_config
from card_press_backend.credentials import CredentialCache
from card_press_backend.edit_requests import get_request_builder
from card_press_backend.editing_service import EditingServiceClient
from card_press_backend.main import app, get_orchestrator
from card_press_backend.models import BearerCredential
from card_press_backend.orchestrator import EditOrchestrator

API_BASE = "https://image.test/pie/psdService"
STATUS_URL = "https://image.test/pie/psdService/status/job-1"
OUTPUT_HREF = "https://test-bucket.s3.amazonaws.com/card-press/outputs/result.psd"
PDF_BYTES = b"%PDF-1.4\n% generated card\n%%EOF"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def status_doc(state, href=None, errors=None):
    """Status document shaped like the editing service's job status answer."""
    output = {"status": state}
    if href:
        output["_links"] = {"renditions": [{"href": href, "storage": "external"}]}
    if errors is not None:
        output["errors"] = errors
    return {"jobId": "job-1", "outputs": [output]}


class StaticTokenProvider:
    """Token provider that counts fetches and hands out numbered tokens."""

    def __init__(self, lifetime=3600.0, clock=lambda: 0.0):
        self.calls = 0
        self.lifetime = lifetime
        self.clock = clock

    async def get_token(self):
        self.calls += 1
        return BearerCredential(token=f"token-{self.calls}", expires_at=self.clock() + self.lifetime)


class FixedStockPicker:
    def __init__(self, path):
        self.path = path

    def pick(self):
        return self.path


class EditingServiceStub:
    """
    Scripted editing service behind an httpx.MockTransport.

    Status queries answer from ``statuses`` in order; the last entry repeats.
    With ``submit_output`` set, the submission itself answers with the result.
    """

    def __init__(self, statuses, submit_status=202, export_status=200, export_body=PDF_BYTES, submit_output=None):
        self.statuses = list(statuses)
        self.submit_status = submit_status
        self.submit_output = submit_output
        self.export_status = export_status
        self.export_body = export_body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "GET" and url == STATUS_URL:
            doc = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json=doc)
        if request.method == "POST" and url.endswith("/export"):
            return httpx.Response(self.export_status, content=self.export_body)
        if request.method == "POST":
            if self.submit_status >= 400:
                return httpx.Response(self.submit_status, json={"code": "InputValidationError", "title": "bad layers"})
            if self.submit_output:
                return httpx.Response(200, json={"output": self.submit_output})
            return httpx.Response(self.submit_status, json={"_links": {"self": {"href": STATUS_URL}}})
        return httpx.Response(404)

    def count(self, method, predicate=lambda url: True):
        return sum(1 for r in self.requests if r.method == method and predicate(str(r.url)))

    @property
    def status_queries(self):
        return self.count("GET", lambda url: url == STATUS_URL)

    @property
    def export_calls(self):
        return self.count("POST", lambda url: url.endswith("/export"))

    def submitted_payload(self):
        submit = next(r for r in self.requests if r.method == "POST" and not str(r.url).endswith("/export"))
        return json.loads(submit.content)


@pytest.fixture(scope="session")
def config():
    return load_config()


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Cleanup test directories after the session."""
    yield
    for name in ("UPLOAD_DIR", "RESPONSES_DIR", "STOCK_PHOTO_DIR"):
        shutil.rmtree(os.environ[name], ignore_errors=True)


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.generate_presigned_url.side_effect = (
        lambda method, Params, ExpiresIn: f"https://test-bucket.s3.amazonaws.com/{Params['Key']}?op={method}"
    )
    return client


@pytest.fixture
def asset_store(s3_client):
    return S3AssetStore(bucket="test-bucket", prefix="card-press/", client=s3_client)


@pytest.fixture
def signature_file(tmp_path):
    path = tmp_path / "signature.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def stock_photo(tmp_path):
    path = tmp_path / "stock.jpg"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def token_provider():
    return StaticTokenProvider()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(config, asset_store, stock_photo, token_provider, sleeps):
    """Build an orchestrator wired to a scripted editing service."""

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(stub, **overrides):
        editing = EditingServiceClient(
            api_base=API_BASE,
            api_key="test-client-id",
            export_url=f"{API_BASE}/export",
            transport=httpx.MockTransport(stub),
        )
        options = dict(
            credentials=CredentialCache(token_provider, clock=lambda: 0.0),
            asset_store=asset_store,
            editing=editing,
            stock_picker=FixedStockPicker(stock_photo),
            request_builder=get_request_builder("document_operations"),
            layers=config.layers,
            template_href="https://test-bucket.s3.amazonaws.com/templates/license.psd",
            poll_interval=5,
            poll_timeout=600,
            sleep=fake_sleep,
            clock=lambda: float(sum(sleeps)),
        )
        options.update(overrides)
        return EditOrchestrator(**options)

    return factory


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_orchestrator():
    def install(orchestrator):
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return orchestrator

    return install
