"""Tests for the Pollinations HTTP transport."""

import asyncio
import base64
import json

import httpx
import pytest

from banana_studio.errors import BackendError, ResponseFormatError
from banana_studio.generators.pollinations import PollinationsTransport
from banana_studio.models import BackendRequest, BinaryImage, JsonDocument, Operation, RawBinary

from conftest import JPEG_BYTES, PNG_BYTES


ENDPOINT = "https://gen.test/generate"


def make_transport(handler):
    return PollinationsTransport(endpoint=ENDPOINT, transport=httpx.MockTransport(handler))


def send(transport, request, api_key="pk-test"):
    return asyncio.run(transport.send(request, api_key))


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


class TestPayload:
    def test_text_only(self):
        recorder = Recorder(httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"}))
        send(make_transport(recorder), BackendRequest(Operation.TEXT_TO_IMAGE, "a fox Style: ink. Aspect: 1:1."))

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["authorization"] == "Bearer pk-test"
        assert request.headers["content-type"] == "application/json"
        assert recorder.body == {"prompt": "a fox Style: ink. Aspect: 1:1."}

    def test_style_transform_sends_bare_base64(self, jpeg_data_url):
        recorder = Recorder(httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"}))
        image = BinaryImage.from_data_url(jpeg_data_url)
        send(make_transport(recorder), BackendRequest(Operation.STYLE_TRANSFORM, "Transform image to ink.", (image,)))

        body = recorder.body
        assert not body["init_image"].startswith("data:")
        assert base64.b64decode(body["init_image"]) == JPEG_BYTES
        assert body["init_image_mime_type"] == "image/jpeg"
        assert "init_images" not in body

    def test_two_image_operations_send_ordered_list(self, png_image):
        second = BinaryImage(data=JPEG_BYTES, mime_type="image/jpeg")
        for operation in (Operation.FUSE, Operation.FIT_CHECK):
            recorder = Recorder(httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"}))
            send(make_transport(recorder), BackendRequest(operation, "instruction", (png_image, second)))

            body = recorder.body
            assert [base64.b64decode(item) for item in body["init_images"]] == [PNG_BYTES, JPEG_BYTES]
            assert body["init_image_mime_types"] == ["image/png", "image/jpeg"]


class TestResponses:
    def test_image_body(self):
        recorder = Recorder(httpx.Response(200, content=JPEG_BYTES, headers={"content-type": "image/jpeg; q=1"}))
        response = send(make_transport(recorder), BackendRequest(Operation.TEXT_TO_IMAGE, "x"))
        assert response == RawBinary(data=JPEG_BYTES, mime_type="image/jpeg")

    def test_json_body(self):
        recorder = Recorder(httpx.Response(200, json={"images": ["https://cdn.test/a.png"]}))
        response = send(make_transport(recorder), BackendRequest(Operation.TEXT_TO_IMAGE, "x"))
        assert isinstance(response, JsonDocument)
        assert response.data == {"images": ["https://cdn.test/a.png"]}
        assert "cdn.test" in response.raw

    def test_non_json_body(self):
        recorder = Recorder(httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/html"}))
        with pytest.raises(ResponseFormatError) as exc_info:
            send(make_transport(recorder), BackendRequest(Operation.TEXT_TO_IMAGE, "x"))
        assert exc_info.value.raw == "<html>gateway</html>"
        assert "text/html" in str(exc_info.value)

    @pytest.mark.parametrize("status", [400, 401, 429, 503])
    def test_error_status(self, status):
        recorder = Recorder(httpx.Response(status, text="nope"))
        with pytest.raises(BackendError) as exc_info:
            send(make_transport(recorder), BackendRequest(Operation.TEXT_TO_IMAGE, "x"))
        assert exc_info.value.status == status
        assert exc_info.value.body == "nope"
        assert exc_info.value.retryable == (status in (429, 503))

    def test_network_failure_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError) as exc_info:
            send(make_transport(handler), BackendRequest(Operation.TEXT_TO_IMAGE, "x"))
        assert exc_info.value.status is None
        assert not exc_info.value.retryable


class TestDownload:
    def test_downloads_image(self):
        recorder = Recorder(httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"}))
        response = asyncio.run(make_transport(recorder).download("https://cdn.test/a.png", "pk-test"))
        assert response == RawBinary(data=PNG_BYTES, mime_type="image/png")
        assert recorder.requests[0].method == "GET"

    def test_rejects_non_image(self):
        recorder = Recorder(httpx.Response(200, text="not found page", headers={"content-type": "text/plain"}))
        with pytest.raises(ResponseFormatError):
            asyncio.run(make_transport(recorder).download("https://cdn.test/a.png", "pk-test"))

    def test_server_error_is_retryable(self):
        recorder = Recorder(httpx.Response(502, text="bad gateway"))
        with pytest.raises(BackendError) as exc_info:
            asyncio.run(make_transport(recorder).download("https://cdn.test/a.png", "pk-test"))
        assert exc_info.value.retryable
