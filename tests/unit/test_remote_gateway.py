import asyncio
import base64
import io

import httpx
import numpy as np
import pytest
from PIL import Image as PILImage

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RemoteUnavailable
from rasteredit.infrastructure.gateway.remote_gateway import (
    RemoteEnhancementGateway,
    RemoteProvider,
    providers_from_env,
)


def source():
    arr = np.zeros((3, 4, 4), dtype=np.uint8)
    arr[..., 3] = 255
    return Image.from_array(arr)


def png_bytes(w=8, h=6) -> bytes:
    buf = io.BytesIO()
    PILImage.new("RGBA", (w, h), (10, 20, 30, 255)).save(buf, format="PNG")
    return buf.getvalue()


def gateway(handler, providers):
    return RemoteEnhancementGateway(
        providers=providers, timeout=5, transport=httpx.MockTransport(handler)
    )


def test_no_providers_is_unavailable():
    gw = RemoteEnhancementGateway(providers=[])
    assert not gw.configured
    with pytest.raises(RemoteUnavailable):
        asyncio.run(gw.enhance(source(), "upscale"))


def test_unknown_operation():
    gw = RemoteEnhancementGateway(providers=[RemoteProvider("a", "https://a.test/run")])
    with pytest.raises(ValueError):
        asyncio.run(gw.enhance(source(), "colorize"))


def test_falls_through_to_next_provider():
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "a.test":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, content=png_bytes(), headers={"content-type": "image/png"})

    gw = gateway(
        handler,
        [RemoteProvider("a", "https://a.test/run"), RemoteProvider("b", "https://b.test/run")],
    )
    out = asyncio.run(gw.enhance(source(), "upscale", {"scale": 2}))
    assert seen == ["a.test", "b.test"]
    assert out.size == (8, 6)


def test_tries_every_token_of_a_provider():
    auth = []

    def handler(request):
        auth.append(request.headers.get("authorization"))
        if request.headers.get("authorization") == "Bearer bad":
            return httpx.Response(401, json={"error": "unauthorized"})
        return httpx.Response(200, content=png_bytes(), headers={"content-type": "image/png"})

    gw = gateway(handler, [RemoteProvider("a", "https://a.test/run", tokens=["bad", "good"])])
    asyncio.run(gw.enhance(source(), "face_restore"))
    assert auth == ["Bearer bad", "Bearer good"]


def test_json_payload_with_data_url():
    encoded = base64.b64encode(png_bytes(5, 5)).decode()

    def handler(request):
        return httpx.Response(200, json={"success": True, "image": f"data:image/png;base64,{encoded}"})

    gw = gateway(handler, [RemoteProvider("a", "https://a.test/run")])
    assert asyncio.run(gw.enhance(source(), "upscale")).size == (5, 5)


def test_all_failures_raise_unavailable_with_last_error():
    calls = []

    def handler(request):
        calls.append(request.url.host)
        if request.url.host == "a.test":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"success": False, "error": "model is loading"})

    gw = gateway(
        handler,
        [RemoteProvider("a", "https://a.test/run"), RemoteProvider("b", "https://b.test/run", ["t1", "t2"])],
    )
    with pytest.raises(RemoteUnavailable) as exc:
        asyncio.run(gw.enhance(source(), "upscale"))
    assert calls == ["a.test", "b.test", "b.test"]
    assert "model is loading" in str(exc.value)


def test_undecodable_image_moves_on():
    def handler(request):
        return httpx.Response(200, content=b"garbage", headers={"content-type": "image/png"})

    gw = gateway(handler, [RemoteProvider("a", "https://a.test/run")])
    with pytest.raises(RemoteUnavailable):
        asyncio.run(gw.enhance(source(), "upscale"))


def test_request_carries_image_and_operation():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(200, content=png_bytes(), headers={"content-type": "image/png"})

    gw = gateway(handler, [RemoteProvider("a", "https://a.test/run")])
    asyncio.run(gw.enhance(source(), "upscale", {"scale": 4}))
    assert b'name="image"' in bodies[0]
    assert b"upscale" in bodies[0]
    assert b'"scale": 4' in bodies[0]


def test_providers_from_env(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_REMOTE_PROVIDERS", "https://a.test/run, https://b.test/x")
    monkeypatch.setenv("RASTEREDIT_REMOTE_TOKENS", "t1,t2")
    providers = providers_from_env()
    assert [p.name for p in providers] == ["a.test", "b.test"]
    assert providers[1].tokens == ["t1", "t2"]
