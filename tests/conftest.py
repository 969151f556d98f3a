"""
Shared pytest fixtures.

No network required: storage and queue endpoints are served by
`httpx.MockTransport` handlers defined here.
"""
import json
import sys
from pathlib import Path

import httpx
import pytest

# Ensure project root is on the path when running `pytest` from any directory.
_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from evacgen.config import ServiceConfig  # noqa: E402


@pytest.fixture
def images_root(tmp_path) -> Path:
    for category in ("facility", "crowd"):
        (tmp_path / category).mkdir()
    return tmp_path


@pytest.fixture
def add_image(images_root):
    def _add(category: str, name: str, data: bytes = b"\x89PNG fake") -> Path:
        path = images_root / category / name
        path.write_bytes(data)
        return path
    return _add


@pytest.fixture
def config(images_root) -> ServiceConfig:
    return ServiceConfig(
        fal_key="test-key",
        model_id="fal-ai/test-model/edit",
        queue_url="https://queue.test",
        storage_url="https://storage.test",
        images_root=str(images_root),
        timeout_seconds=5.0,
        poll_interval_seconds=0,
    )


class StorageStub:
    """In-memory fal storage: initiate returns signed URLs, PUT records bytes."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.initiated = []
        self.uploads = []
        self.auth = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/storage/upload/initiate":
            body = json.loads(request.content)
            name = body["file_name"]
            self.initiated.append(body)
            self.auth.append(request.headers.get("authorization"))
            if name in self.failing:
                return httpx.Response(500, json={"detail": "storage unavailable"})
            return httpx.Response(
                200,
                json={
                    "upload_url": f"https://upload.test/{name}",
                    "file_url": f"https://cdn.test/{name}",
                },
            )
        if request.method == "PUT":
            self.uploads.append(
                (request.url.path.lstrip("/"), request.content, request.headers["content-type"])
            )
            return httpx.Response(200)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def storage():
    return StorageStub()
