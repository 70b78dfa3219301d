#!/usr/bin/env python3
"""
Web server for imagepipe - image generation HTTP API.
Exposes the generation pipeline and its capability/pricing tables as REST endpoints.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.datastructures import FileStorage

from imagepipe.config import Settings, get_settings
from imagepipe.core import (
    ImagePipeline,
    handle_edit,
    handle_generate,
    handle_variation,
)
from imagepipe.errors import InvalidParameter
from imagepipe.models import EditRequest, VariationRequest
from imagepipe.providers.openai_sdk_provider import OpenAISDKProvider
from imagepipe.utils import to_png_bytes

logger = logging.getLogger(__name__)

EXTENSION_KEY = "imagepipe"


def create_app(
    pipeline: Optional[ImagePipeline] = None, config: Optional[Settings] = None
) -> Flask:
    """Composition root: builds the provider and pipeline once per process."""
    config = config or get_settings()
    if pipeline is None:
        pipeline = ImagePipeline(OpenAISDKProvider(config), config)

    app = Flask(__name__)
    CORS(app)
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # 16MB max upload size
    app.extensions[EXTENSION_KEY] = {"pipeline": pipeline, "settings": config}
    _register_routes(app)
    return app


def _pipeline() -> ImagePipeline:
    return current_app.extensions[EXTENSION_KEY]["pipeline"]


def _credential() -> Optional[str]:
    return current_app.extensions[EXTENSION_KEY]["settings"].credential


def _request_data() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None and request.form:
        data = request.form.to_dict()
    return data or {}


def _read_upload(name: str, required: bool = True) -> Optional[bytes]:
    upload: Optional[FileStorage] = request.files.get(name)
    if upload is None or not upload.filename:
        if required:
            raise InvalidParameter(f"Missing '{name}' file upload.")
        return None
    try:
        return to_png_bytes(upload.read())
    except OSError:
        raise InvalidParameter(f"'{name}' upload is not a readable image.") from None


def _int_field(data: Dict[str, Any], name: str) -> Optional[int]:
    value = data.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"'{name}' must be an integer.") from None


def _register_routes(app: Flask) -> None:
    @app.route("/api/generate-image", methods=["POST"])
    def generate_image():
        """Generate an image from a prompt"""
        payload, status = asyncio.run(
            handle_generate(_request_data(), _pipeline(), _credential())
        )
        return jsonify(payload), status

    @app.route("/api/generate-image", methods=["GET"])
    def get_configuration():
        """Report whether a credential is configured plus model capabilities and pricing"""
        return jsonify(_pipeline().describe_configuration(_credential()))

    @app.route("/api/images/edits", methods=["POST"])
    def edit_image():
        """Edit an uploaded image with an optional mask (dall-e-2)"""
        data = request.form.to_dict()
        try:
            edit_request = EditRequest(
                image=_read_upload("image"),
                mask=_read_upload("mask", required=False),
                prompt=data.get("prompt", ""),
                model=data.get("model") or None,
                size=data.get("size") or None,
                n=_int_field(data, "n"),
                response_format=data.get("response_format") or None,
            )
        except InvalidParameter as e:
            return jsonify({"error": e.message}), e.status_code
        payload, status = asyncio.run(
            handle_edit(edit_request, _pipeline(), _credential())
        )
        return jsonify(payload), status

    @app.route("/api/images/variations", methods=["POST"])
    def create_variation():
        """Create variations of an uploaded image (dall-e-2)"""
        data = request.form.to_dict()
        try:
            variation_request = VariationRequest(
                image=_read_upload("image"),
                model=data.get("model") or None,
                size=data.get("size") or None,
                n=_int_field(data, "n"),
                response_format=data.get("response_format") or None,
            )
        except InvalidParameter as e:
            return jsonify({"error": e.message}), e.status_code
        payload, status = asyncio.run(
            handle_variation(variation_request, _pipeline(), _credential())
        )
        return jsonify(payload), status

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({"error": "Uploaded file is too large"}), 413

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500


def main(host: str = "0.0.0.0", port: int = 5000, debug: bool = False) -> None:
    config = get_settings()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting imagepipe web server on http://%s:%s", host, port)
    if not config.configured:
        logger.warning("OPENAI_API_KEY is not set; generation requests will fail")
    create_app(config=config).run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
