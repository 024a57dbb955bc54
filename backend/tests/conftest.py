"""Shared fixtures for the image relay tests.

Outbound HTTP (image hosts, Discord) goes through ``httpx.MockTransport``
and uploads land in an in-memory storage client, so no test touches the
network or a real bucket.
"""

from typing import Callable, Optional

import cv2
import httpx
import numpy as np
import pytest
from fastapi.testclient import TestClient

from imagerelay.api.v1 import images
from imagerelay.core.config import Settings
from imagerelay.core.errors import StorageError
from imagerelay.main import app
from imagerelay.services.discord_service import DiscordEmojiClient
from imagerelay.services.fetch_service import ImageFetcher
from imagerelay.services.image_service import ImageProcessor
from imagerelay.utils.storage import StorageClient


class InMemoryStorageClient(StorageClient):
    """Keeps uploaded objects in a dict keyed by object key."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail = False

    def _put_object(self, key: str, file_bytes: bytes, content_type: str) -> None:
        if self.fail:
            raise StorageError("Failed to upload image to storage")
        self.objects[key] = (file_bytes, content_type)


class FakeHttpService:
    """Canned responses per URL, recording every request it sees."""

    def __init__(self):
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, status_code: int = 200, content: bytes = b"",
            content_type: Optional[str] = None, json: Optional[dict] = None) -> None:
        headers = {"content-type": content_type} if content_type else {}

        def respond(request: httpx.Request) -> httpx.Response:
            if json is not None:
                return httpx.Response(status_code, json=json)
            return httpx.Response(status_code, content=content, headers=headers)

        self.routes[url] = respond

    def add_error(self, url: str, error_cls: type = httpx.ConnectError) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise error_cls("simulated failure", request=request)

        self.routes[url] = fail

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get(str(request.url))
        if responder is None:
            return httpx.Response(404, text="not found")
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def encode_png(pixels: np.ndarray) -> bytes:
    is_success, buffer = cv2.imencode(".png", pixels)
    assert is_success
    return buffer.tobytes()


@pytest.fixture
def test_settings():
    return Settings(
        STORAGE_BACKEND="r2",
        R2_ACCESS_KEY_ID="test-access-key",
        R2_SECRET_ACCESS_KEY="test-secret-key",
        R2_ENDPOINT_URL="https://r2.example.test",
        STORAGE_BUCKET_NAME="test-bucket",
        CDN_BASE_URL="https://cdn.example.test/",
        DISCORD_API_BASE_URL="https://discord.example.test/api/v10",
        HTTP_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def transparent_png():
    """10x10 fully transparent RGBA image."""
    return encode_png(np.zeros((10, 10, 4), dtype=np.uint8))


@pytest.fixture
def gray_png():
    """64x48 mid-gray opaque image."""
    return encode_png(np.full((48, 64, 3), 128, dtype=np.uint8))


@pytest.fixture
def image_host():
    return FakeHttpService()


@pytest.fixture
def discord_api():
    return FakeHttpService()


@pytest.fixture
def storage(test_settings):
    return InMemoryStorageClient(test_settings)


@pytest.fixture
def client(test_settings, image_host, discord_api, storage):
    app.dependency_overrides[images.get_image_fetcher] = lambda: ImageFetcher(
        test_settings, transport=image_host.transport
    )
    app.dependency_overrides[images.get_image_processor] = lambda: ImageProcessor(
        jpeg_quality=test_settings.JPEG_QUALITY, emoji_size=test_settings.EMOJI_SIZE
    )
    app.dependency_overrides[images.get_storage_client] = lambda: storage
    app.dependency_overrides[images.get_discord_client] = lambda: DiscordEmojiClient(
        test_settings, transport=discord_api.transport
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
