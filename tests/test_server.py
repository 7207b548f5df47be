"""HTTP API tests."""

from __future__ import annotations

import json
from typing import Any

import pytest

from igplanner.config.models import PlannerConfig
from igplanner.server import create_app
from igplanner.suggestion import (
    SuggestionConfigurationError,
    SuggestionResult,
    SuggestionTimeoutError,
    SuggestionValidationError,
    UpstreamError,
)
from igplanner.webdav import DavPathError, DavResponseError, RemoteImage

IMAGE = "data:image/jpeg;base64,/9j/4AAQ"


class StubSuggestions:
    configured = True

    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls: list[tuple[Any, Any]] = []

    def suggest(self, mode: Any, image_data_url: Any) -> SuggestionResult:
        self.calls.append((mode, image_data_url))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class StubRemoteFile:
    def __init__(self, chunks: list[bytes], content_type: str) -> None:
        self.chunks = chunks
        self.content_type = content_type

    def iter_bytes(self) -> Any:
        yield from self.chunks


class StubNextcloud:
    def __init__(self, images: Any = (), file_outcome: Any = None) -> None:
        self.images = images
        self.file_outcome = file_outcome
        self.opened: list[str] = []

    def sample_images(self) -> list[RemoteImage]:
        if isinstance(self.images, Exception):
            raise self.images
        return list(self.images)

    def open_file(self, relative_path: str) -> Any:
        self.opened.append(relative_path)
        if isinstance(self.file_outcome, Exception):
            raise self.file_outcome
        return self.file_outcome


def _client(suggestions: Any = None, nextcloud: Any = None) -> Any:
    app = create_app(
        PlannerConfig(),
        suggestions=suggestions or StubSuggestions(SuggestionResult()),
        nextcloud=nextcloud,
    )
    app.testing = True
    return app.test_client()


def test_suggest_returns_fields() -> None:
    stub = StubSuggestions(SuggestionResult(caption="Hi", hashtags="#a", raw="CAPTION: Hi"))

    response = _client(stub).post("/api/suggest", json={"mode": "both", "imageDataUrl": IMAGE})

    assert response.status_code == 200
    assert response.get_json() == {"caption": "Hi", "hashtags": "#a", "raw": "CAPTION: Hi"}
    assert stub.calls == [("both", IMAGE)]


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (SuggestionValidationError("Invalid mode"), 400, "Invalid mode"),
        (
            SuggestionConfigurationError("OPENAI_API_KEY is not set on server"),
            500,
            "OPENAI_API_KEY is not set on server",
        ),
        (UpstreamError(429, "rate limited"), 429, "OpenAI error: rate limited"),
        (SuggestionTimeoutError("too slow"), 504, "too slow"),
    ],
)
def test_suggest_maps_errors(error: Exception, status: int, message: str) -> None:
    response = _client(StubSuggestions(error)).post(
        "/api/suggest", json={"mode": "both", "imageDataUrl": IMAGE}
    )

    assert response.status_code == status
    assert response.get_json() == {"error": message}


def test_suggest_tolerates_non_json_body() -> None:
    stub = StubSuggestions(SuggestionValidationError("Invalid mode"))

    response = _client(stub).post("/api/suggest", data="not json", content_type="text/plain")

    assert response.status_code == 400
    assert stub.calls == [(None, None)]


def test_samples_require_configuration() -> None:
    response = _client().get("/api/nextcloud/samples")

    assert response.status_code == 400
    assert "NEXTCLOUD_" in response.get_json()["error"]


def test_samples_list_proxy_urls() -> None:
    nextcloud = StubNextcloud(images=[RemoteImage(path="Trip/a b.jpg", name="a b.jpg")])

    response = _client(nextcloud=nextcloud).get("/api/nextcloud/samples")

    assert response.status_code == 200
    assert response.get_json() == {
        "images": [
            {
                "name": "a b.jpg",
                "path": "Trip/a b.jpg",
                "url": "/api/nextcloud/file?path=Trip%2Fa%20b.jpg",
            }
        ]
    }


def test_samples_report_crawl_failure() -> None:
    nextcloud = StubNextcloud(images=DavResponseError("PROPFIND failed", status=401, body="no"))

    response = _client(nextcloud=nextcloud).get("/api/nextcloud/samples")

    assert response.status_code == 500
    assert response.get_json() == {"error": "PROPFIND failed"}


def test_file_proxy_streams_bytes() -> None:
    nextcloud = StubNextcloud(file_outcome=StubRemoteFile([b"ab", b"cd"], "image/png"))

    response = _client(nextcloud=nextcloud).get("/api/nextcloud/file?path=Trip%2Fa%20b.jpg")

    assert response.status_code == 200
    assert response.data == b"abcd"
    assert response.headers["Content-Type"] == "image/png"
    assert nextcloud.opened == ["Trip/a b.jpg"]


def test_file_proxy_requires_configuration_and_path() -> None:
    missing_config = _client().get("/api/nextcloud/file?path=a.jpg")
    missing_path = _client(nextcloud=StubNextcloud()).get("/api/nextcloud/file")

    assert missing_config.status_code == 400
    assert missing_config.get_data(as_text=True) == "Missing Nextcloud env configuration."
    assert missing_path.status_code == 400
    assert missing_path.get_data(as_text=True) == "Missing path query."


@pytest.mark.parametrize(
    ("error", "status", "body"),
    [
        (DavPathError("Path escapes the share root"), 400, "Path escapes the share root"),
        (DavResponseError("Not Found", status=404, body="Not Found"), 404, "Not Found"),
    ],
)
def test_file_proxy_maps_errors(error: Exception, status: int, body: str) -> None:
    nextcloud = StubNextcloud(file_outcome=error)

    response = _client(nextcloud=nextcloud).get("/api/nextcloud/file?path=x")

    assert response.status_code == status
    assert response.get_data(as_text=True) == body


def test_health_reports_wiring() -> None:
    response = _client(nextcloud=StubNextcloud()).get("/api/health")

    assert response.get_json() == {"ok": True, "nextcloud": True, "suggestions": True}


def test_oversized_body_is_rejected() -> None:
    config = PlannerConfig.model_validate({"server": {"max_content_length_mb": 1}})
    app = create_app(config, suggestions=StubSuggestions(SuggestionResult()))
    body = json.dumps({"mode": "both", "imageDataUrl": "data:image/png;base64," + "A" * 2_000_000})

    response = app.test_client().post(
        "/api/suggest", data=body, content_type="application/json"
    )

    assert response.status_code == 413
