import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront_media.api.app import create_app
from storefront_media.enums import ErrorKind, Provider
from storefront_media.errors import MediaError
from storefront_media.providers.relay import RelayUploadAdapter, parse_upstream_response, upstream_succeeded

from conftest import PNG_BYTES, make_request, mock_http

UPSTREAM_OK = {
    "status_code": 200,
    "success": {"message": "image uploaded", "code": 200},
    "image": {
        "name": "shirt",
        "extension": "png",
        "size": 72,
        "width": 800,
        "height": 600,
        "id_encoded": "KrX3Xo7",
        "display_url": "https://iili.io/KrX3Xo7.md.png",
        "url": "https://iili.io/KrX3Xo7.png",
        "image": {"filename": "KrX3Xo7.png", "mime": "image/png", "url": "https://iili.io/KrX3Xo7.png"},
        "thumb": {"url": "https://iili.io/KrX3Xo7.th.png"},
        "medium": {"url": "https://iili.io/KrX3Xo7.md.png"},
        "delete_url": "https://freeimage.host/i/KrX3Xo7/delete/abc",
    },
    "status_txt": "OK",
}


# -- upstream parsing ----------------------------------------------------------


def test_status_code_and_ok_text_with_display_url():
    image = parse_upstream_response(UPSTREAM_OK)
    assert image.display_url == "https://iili.io/KrX3Xo7.md.png"
    assert image.id == "KrX3Xo7"
    assert image.filename == "KrX3Xo7.png"
    assert image.mime_type == "image/png"
    assert image.thumbnail_url == "https://iili.io/KrX3Xo7.th.png"
    assert (image.width, image.height, image.size) == (800, 600, 72)


def test_status_400_is_upload_failed():
    payload = {"status_code": 400, "error": {"message": "Duplicated upload", "code": 101}, "status_txt": "Bad Request"}
    with pytest.raises(MediaError) as exc_info:
        parse_upstream_response(payload)
    assert exc_info.value.kind == ErrorKind.upload_failed
    assert exc_info.value.message == "Duplicated upload"
    assert exc_info.value.raw_code == "101"


@pytest.mark.parametrize(
    "payload",
    [
        {"status_code": 200},
        {"status": 200},
        {"status": "201"},
        {"status_txt": "OK"},
        {"status_txt": "ok"},
    ],
)
def test_success_indicator_variants(payload):
    assert upstream_succeeded(payload)


@pytest.mark.parametrize(
    "payload",
    [
        {"status_code": 400, "status_txt": "OK"},
        {"status": 500},
        {"status_txt": "Bad Request"},
        {},
    ],
)
def test_failure_indicator_variants(payload):
    assert not upstream_succeeded(payload)


def test_ok_response_without_any_url_is_no_url():
    payload = {
        "status_code": 200,
        "status_txt": "OK",
        "image": {"display_url": "", "image": {"filename": "x.png"}, "thumb": {}},
    }
    with pytest.raises(MediaError) as exc_info:
        parse_upstream_response(payload)
    assert exc_info.value.kind == ErrorKind.no_url


@pytest.mark.parametrize(
    ("image", "expected"),
    [
        ({"url": "https://iili.io/a.png"}, "https://iili.io/a.png"),
        ({"image": {"url": "https://iili.io/b.png"}}, "https://iili.io/b.png"),
        ({"medium": {"url": "https://iili.io/c.md.png"}}, "https://iili.io/c.md.png"),
    ],
)
def test_display_url_fallbacks(image, expected):
    assert parse_upstream_response({"status_txt": "OK", "image": image}).display_url == expected


# -- relay endpoint ------------------------------------------------------------


def relay_app(media_client_factory, upstream_handler, **settings_overrides):
    return create_app(media_client=media_client_factory(upstream_handler, **settings_overrides))


def test_relay_forwards_base64_with_server_key(media_client_factory):
    seen = {}

    def upstream(request: httpx.Request) -> httpx.Response:
        seen["form"] = dict(httpx.QueryParams(request.read().decode()))
        return httpx.Response(200, json=UPSTREAM_OK)

    encoded = base64.b64encode(PNG_BYTES)
    with TestClient(relay_app(media_client_factory, upstream)) as client:
        resp = client.post("/api/upload", files={"file": ("shirt.png", encoded, "text/plain")}, data={"name": "shirt"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["display_url"] == "https://iili.io/KrX3Xo7.md.png"
    assert body["data"]["medium_url"] == "https://iili.io/KrX3Xo7.md.png"
    assert seen["form"]["key"] == "upstream-key"
    assert seen["form"]["source"] == encoded.decode()
    assert seen["form"]["name"] == "shirt"


def test_relay_encodes_raw_binary_uploads(media_client_factory):
    seen = {}

    def upstream(request):
        seen["form"] = dict(httpx.QueryParams(request.read().decode()))
        return httpx.Response(200, json=UPSTREAM_OK)

    with TestClient(relay_app(media_client_factory, upstream)) as client:
        resp = client.post("/api/upload", files={"file": ("shirt.png", PNG_BYTES, "image/png")})

    assert resp.status_code == 200
    assert base64.b64decode(seen["form"]["source"]) == PNG_BYTES


def test_relay_without_key_is_500(media_client_factory):
    with TestClient(relay_app(media_client_factory, None, relay_upstream_api_key="")) as client:
        resp = client.post("/api/upload", files={"file": ("a.png", b"abc", "image/png")})
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "NO_API_KEY"


def test_relay_without_file_is_400(media_client_factory):
    with TestClient(relay_app(media_client_factory, None)) as client:
        resp = client.post("/api/upload", data={"name": "x"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": {"code": "NO_FILE", "message": "No file provided"}}


@pytest.mark.parametrize(
    ("status", "code"),
    [(401, "UNAUTHORIZED"), (413, "FILE_TOO_LARGE"), (429, "RATE_LIMIT")],
)
def test_relay_maps_upstream_statuses(media_client_factory, status, code):
    with TestClient(relay_app(media_client_factory, lambda r: httpx.Response(status))) as client:
        resp = client.post("/api/upload", files={"file": ("a.png", b"abc", "image/png")})
    assert resp.status_code == status
    assert resp.json()["error"]["code"] == code


def test_relay_reports_no_url(media_client_factory):
    body = {"status_code": 200, "status_txt": "OK", "image": {}}
    with TestClient(relay_app(media_client_factory, lambda r: httpx.Response(200, json=body))) as client:
        resp = client.post("/api/upload", files={"file": ("a.png", b"abc", "image/png")})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "NO_URL"


# -- client adapter ------------------------------------------------------------


async def test_adapter_round_trip_through_relay_endpoint(media_client_factory):
    # ASGITransport skips the lifespan, so wire the relay's client by hand
    relay_side = media_client_factory(lambda r: httpx.Response(200, json=UPSTREAM_OK))
    app = create_app(media_client=relay_side)
    app.state.media = relay_side
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    adapter = RelayUploadAdapter(http, relay_url="http://relay.test/api/upload")

    result = await adapter.send(make_request(), "media/shirt.png")

    assert result.success
    assert result.provider == Provider.relay
    assert result.primary_url == "https://iili.io/KrX3Xo7.md.png"
    assert result.remote_id == "KrX3Xo7"
    assert result.secondary_urls["thumbnail"] == "https://iili.io/KrX3Xo7.th.png"
    await http.aclose()


async def test_adapter_sends_base64_field():
    seen = {}

    def relay(request):
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True, "data": {"id": "1", "display_url": "https://iili.io/1.png"}})

    adapter = RelayUploadAdapter(mock_http(relay), relay_url="http://relay.test/api/upload")
    await adapter.send(make_request(), "media/shirt.png")
    assert base64.b64encode(PNG_BYTES) in seen["body"]
    assert b'name="file"; filename="shirt.png"' in seen["body"]


@pytest.mark.parametrize(
    ("status", "code", "kind"),
    [
        (429, "RATE_LIMIT", ErrorKind.rate_limit),
        (500, "NO_API_KEY", ErrorKind.internal_error),
        (400, "UPLOAD_FAILED", ErrorKind.upload_failed),
        (502, "NO_URL", ErrorKind.no_url),
    ],
)
async def test_adapter_maps_envelope_errors(status, code, kind):
    envelope = {"success": False, "error": {"code": code, "message": "nope"}}
    adapter = RelayUploadAdapter(mock_http(lambda r: httpx.Response(status, json=envelope)), relay_url="http://relay.test/api/upload")
    with pytest.raises(MediaError) as exc_info:
        await adapter.send(make_request(), "media/a.png")
    assert exc_info.value.kind == kind
    assert exc_info.value.raw_code == code


async def test_adapter_falls_back_to_http_status():
    adapter = RelayUploadAdapter(mock_http(lambda r: httpx.Response(413, text="too big")), relay_url="http://relay.test/api/upload")
    with pytest.raises(MediaError) as exc_info:
        await adapter.send(make_request(), "media/a.png")
    assert exc_info.value.kind == ErrorKind.file_too_large


async def test_adapter_success_without_url_is_no_url():
    adapter = RelayUploadAdapter(
        mock_http(lambda r: httpx.Response(200, json={"success": True, "data": {"id": "1"}})),
        relay_url="http://relay.test/api/upload",
    )
    with pytest.raises(MediaError) as exc_info:
        await adapter.send(make_request(), "media/a.png")
    assert exc_info.value.kind == ErrorKind.no_url


async def test_adapter_keeps_upstream_error_code_through_relay(media_client_factory):
    rejected = {"status_code": 400, "error": {"message": "Duplicated upload", "code": 101}, "status_txt": "Bad Request"}
    relay_side = media_client_factory(lambda r: httpx.Response(400, json=rejected))
    app = create_app(media_client=relay_side)
    app.state.media = relay_side
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    adapter = RelayUploadAdapter(http, relay_url="http://relay.test/api/upload")

    with pytest.raises(MediaError) as exc_info:
        await adapter.send(make_request(), "media/shirt.png")

    assert exc_info.value.kind == ErrorKind.upload_failed
    assert exc_info.value.message == "Duplicated upload"
    assert exc_info.value.raw_code == "101"
    await http.aclose()


def test_relay_error_envelope_carries_upstream_code(media_client_factory):
    with TestClient(relay_app(media_client_factory, lambda r: httpx.Response(429))) as client:
        resp = client.post("/api/upload", files={"file": ("a.png", b"abc", "image/png")})
    error = resp.json()["error"]
    assert error["code"] == "RATE_LIMIT"
    assert error["upstream_code"] == "429"
