"""HTTP API: suggestion proxy and Nextcloud sample/file proxy."""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, Response, jsonify, request

from igplanner.config.models import PlannerConfig
from igplanner.suggestion import (
    SuggestionConfigurationError,
    SuggestionService,
    SuggestionTimeoutError,
    SuggestionTransportError,
    SuggestionValidationError,
    UpstreamError,
)
from igplanner.webdav import (
    FILE_PROXY_ROUTE,
    DavError,
    DavPathError,
    DavResponseError,
    DavTimeoutError,
    NextcloudClient,
    proxy_url,
)

LOGGER = logging.getLogger(__name__)

_MISSING_NEXTCLOUD_JSON = "Missing NEXTCLOUD_* env vars (base URL, username, app password)."
_MISSING_NEXTCLOUD_TEXT = "Missing Nextcloud env configuration."


def _text(body: str, status: int) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def create_app(
    config: Optional[PlannerConfig] = None,
    *,
    suggestions: Optional[SuggestionService] = None,
    nextcloud: Optional[NextcloudClient] = None,
) -> Flask:
    """Build the Flask application.

    Args:
        config: Resolved planner configuration; defaults apply when omitted.
        suggestions: Optional suggestion service override.
        nextcloud: Optional Nextcloud client override. When omitted a client is
            created only if the share is fully configured.

    Returns:
        Flask: Configured application.
    """
    config = config or PlannerConfig()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.server.max_content_length_mb * 1024 * 1024

    service = suggestions or SuggestionService(config.llm)
    if nextcloud is None and config.nextcloud.is_configured:
        nextcloud = NextcloudClient(config.nextcloud)

    @app.get("/api/health")
    def health():
        return jsonify(
            {"ok": True, "nextcloud": nextcloud is not None, "suggestions": service.configured}
        )

    @app.post("/api/suggest")
    def suggest():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}

        try:
            result = service.suggest(body.get("mode"), body.get("imageDataUrl"))
        except SuggestionConfigurationError as exc:
            return jsonify({"error": str(exc)}), 500
        except SuggestionValidationError as exc:
            return jsonify({"error": str(exc)}), 400
        except UpstreamError as exc:
            LOGGER.warning("Suggestion backend failed with status %s", exc.status)
            return jsonify({"error": f"OpenAI error: {exc.body}"}), exc.status
        except SuggestionTimeoutError as exc:
            return jsonify({"error": str(exc)}), 504
        except SuggestionTransportError as exc:
            return jsonify({"error": str(exc)}), 502

        return jsonify(result.model_dump())

    @app.get("/api/nextcloud/samples")
    def nextcloud_samples():
        if nextcloud is None:
            return jsonify({"error": _MISSING_NEXTCLOUD_JSON}), 400

        try:
            images = nextcloud.sample_images()
        except DavError as exc:
            LOGGER.error("Nextcloud crawl failed: %s", exc)
            return jsonify({"error": str(exc)}), 500

        return jsonify(
            {
                "images": [
                    {"name": image.name, "path": image.path, "url": proxy_url(image.path)}
                    for image in images
                ]
            }
        )

    @app.get(FILE_PROXY_ROUTE)
    def nextcloud_file():
        if nextcloud is None:
            return _text(_MISSING_NEXTCLOUD_TEXT, 400)

        relative_path = request.args.get("path", "")
        if not relative_path:
            return _text("Missing path query.", 400)

        try:
            remote = nextcloud.open_file(relative_path)
        except DavPathError as exc:
            return _text(str(exc), 400)
        except DavResponseError as exc:
            return _text(exc.body, exc.status)
        except DavTimeoutError as exc:
            return _text(str(exc), 504)
        except DavError as exc:
            LOGGER.error("Nextcloud file fetch failed: %s", exc)
            return _text(str(exc), 500)

        return Response(remote.iter_bytes(), content_type=remote.content_type)

    @app.errorhandler(413)
    def payload_too_large(_error):
        return jsonify({"error": "Request body too large."}), 413

    return app


def run_server(config: PlannerConfig, *, debug: bool = False) -> None:
    """Serve the API on the configured host and port."""
    app = create_app(config)
    LOGGER.info("Planner API running on http://%s:%s", config.server.host, config.server.port)
    app.run(host=config.server.host, port=config.server.port, debug=debug)


__all__ = ["create_app", "run_server"]
