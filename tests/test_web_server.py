"""HTTP-level tests for the Flask web server."""

import io

import pytest
from PIL import Image

from imagepipe.core import ImagePipeline
from imagepipe.errors import RateLimitExceeded
from imagepipe.models import GeneratedImage
from imagepipe.web_server import create_app

from conftest import TEST_API_KEY, FakeProvider


def _image_bytes(image_format: str, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (4, 4)).save(buffer, format=image_format)
    return buffer.getvalue()


PNG_IMAGE = _image_bytes("PNG")
PNG_MASK = _image_bytes("PNG", mode="RGBA")


@pytest.fixture
def client(pipeline, settings):
    app = create_app(pipeline=pipeline, config=settings)
    app.config["TESTING"] = True
    return app.test_client()


def test_generate_success(client, fake_provider):
    response = client.post("/api/generate-image", json={"prompt": "a cat", "enhance": True})
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["cost"] == 0.04
    assert body["originalPrompt"] == "a cat"
    assert body["revisedPrompt"] == "a cat, high quality, professional, detailed"
    assert body["image"]["url"].startswith("https://images.example/")
    assert fake_provider.calls[0][2] == TEST_API_KEY


def test_generate_accepts_form_encoded_body(client, fake_provider):
    response = client.post(
        "/api/generate-image",
        data={"prompt": "a cat", "model": "dall-e-2", "size": "512x512", "enhance": "false"},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["cost"] == 0.018
    assert body["revisedPrompt"] == "a cat"


def test_generate_empty_prompt(client, fake_provider):
    response = client.post("/api/generate-image", json={"prompt": ""})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Prompt is required"}
    assert fake_provider.calls == []


def test_generate_rate_limited(settings):
    provider = FakeProvider(error=RateLimitExceeded())
    app = create_app(pipeline=ImagePipeline(provider, settings), config=settings)
    response = app.test_client().post("/api/generate-image", json={"prompt": "a cat"})
    assert response.status_code == 429
    assert "cost" not in response.get_json()


def test_generate_without_credential(unconfigured_settings):
    from imagepipe.providers.openai_sdk_provider import OpenAISDKProvider

    app = create_app(config=unconfigured_settings)
    assert isinstance(app.extensions["imagepipe"]["pipeline"].provider, OpenAISDKProvider)
    response = app.test_client().post("/api/generate-image", json={"prompt": "a cat"})
    assert response.status_code == 500
    assert "OPENAI_API_KEY" in response.get_json()["error"]


def test_configuration_endpoint(client):
    response = client.get("/api/generate-image")
    assert response.status_code == 200
    body = response.get_json()
    assert body["configured"] is True
    models = {model["id"]: model for model in body["models"]}
    assert models["dall-e-2"]["sizes"] == ["256x256", "512x512", "1024x1024"]
    assert models["dall-e-3"]["maxPromptLength"] == 4000
    assert models["dall-e-2"]["maxPromptLength"] == 1000
    assert models["dall-e-2"]["supportsEdit"] is True
    assert "max_prompt_length" not in models["dall-e-3"]
    assert body["pricing"]["dall-e-3"]["hd"]["1024x1792"] == 0.12


def test_configuration_endpoint_unconfigured(unconfigured_settings, fake_provider):
    app = create_app(
        pipeline=ImagePipeline(fake_provider, unconfigured_settings),
        config=unconfigured_settings,
    )
    assert app.test_client().get("/api/generate-image").get_json()["configured"] is False


def test_edit_endpoint(client, fake_provider):
    response = client.post(
        "/api/images/edits",
        data={
            "image": (io.BytesIO(PNG_IMAGE), "cat.png"),
            "mask": (io.BytesIO(PNG_MASK), "mask.png"),
            "prompt": "add a hat",
            "n": "2",
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    body = response.get_json()
    assert len(body["images"]) == 2
    operation, request, _ = fake_provider.calls[0]
    assert operation == "edit"
    assert request.image == PNG_IMAGE
    assert request.mask == PNG_MASK


def test_edit_endpoint_requires_image(client):
    response = client.post(
        "/api/images/edits", data={"prompt": "add a hat"}, content_type="multipart/form-data"
    )
    assert response.status_code == 400


def test_edit_endpoint_converts_jpeg_upload_to_png(client, fake_provider):
    response = client.post(
        "/api/images/edits",
        data={"image": (io.BytesIO(_image_bytes("JPEG")), "cat.jpg"), "prompt": "add a hat"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    _, request, _ = fake_provider.calls[0]
    assert Image.open(io.BytesIO(request.image)).format == "PNG"


@pytest.mark.parametrize("route", ["/api/images/edits", "/api/images/variations"])
def test_upload_that_is_not_an_image_is_rejected(client, fake_provider, route):
    response = client.post(
        route,
        data={"image": (io.BytesIO(b"not an image"), "cat.png"), "prompt": "add a hat"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert "image" in response.get_json()["error"]
    assert fake_provider.calls == []


def test_variation_endpoint_converts_bmp_upload_to_png(client, fake_provider):
    response = client.post(
        "/api/images/variations",
        data={"image": (io.BytesIO(_image_bytes("BMP")), "cat.bmp")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    operation, request, _ = fake_provider.calls[0]
    assert operation == "variation"
    assert Image.open(io.BytesIO(request.image)).format == "PNG"


def test_variation_endpoint_rejects_advanced_tier(client, fake_provider):
    response = client.post(
        "/api/images/variations",
        data={"image": (io.BytesIO(PNG_IMAGE), "cat.png"), "model": "dall-e-3"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert fake_provider.calls == []


def test_variation_endpoint_bad_count(client):
    response = client.post(
        "/api/images/variations",
        data={"image": (io.BytesIO(PNG_IMAGE), "cat.png"), "n": "lots"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400


def test_unknown_route(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Endpoint not found"}


def test_method_not_allowed(client):
    response = client.delete("/api/generate-image")
    assert response.status_code == 405
    assert response.get_json() == {"error": "Method not allowed"}


def test_revised_prompt_from_provider(settings):
    provider = FakeProvider(images=[GeneratedImage(url="https://img/1.png", revised_prompt="A tabby cat")])
    app = create_app(pipeline=ImagePipeline(provider, settings), config=settings)
    body = app.test_client().post("/api/generate-image", json={"prompt": "a cat"}).get_json()
    assert body["revisedPrompt"] == "A tabby cat"
    assert body["image"]["revisedPrompt"] == "A tabby cat"
