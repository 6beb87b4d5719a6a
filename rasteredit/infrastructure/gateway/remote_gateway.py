from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import httpx

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import DecodeError, EncodeError, RemoteUnavailable
from rasteredit.domain.services import pixel_buffer

logger = logging.getLogger(__name__)

REMOTE_OPERATIONS = ("upscale", "face_restore")


@dataclass
class RemoteProvider:
    name: str
    url: str
    tokens: list[str] = field(default_factory=list)


class RemoteProviderError(Exception):
    """One provider/credential attempt failed; the chain moves on."""


def providers_from_env() -> list[RemoteProvider]:
    urls = [u.strip() for u in os.getenv("RASTEREDIT_REMOTE_PROVIDERS", "").split(",") if u.strip()]
    tokens = [t.strip() for t in os.getenv("RASTEREDIT_REMOTE_TOKENS", "").split(",") if t.strip()]
    return [RemoteProvider(name=httpx.URL(u).host or u, url=u, tokens=list(tokens)) for u in urls]


class RemoteEnhancementGateway:
    """Sends an image to external inference providers with a fallback chain.

    Every provider is tried with each of its tokens (or once anonymously when
    it has none), in order. Any failure is logged and the next attempt made;
    RemoteUnavailable is raised only after the whole chain is exhausted.

    Success contract: an ``image/*`` response body, or JSON
    ``{"success": true, "image": "<base64>"}``.
    """

    def __init__(
        self,
        providers: list[RemoteProvider] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.providers = providers if providers is not None else providers_from_env()
        self.timeout = (
            timeout if timeout is not None else float(os.getenv("RASTEREDIT_REMOTE_TIMEOUT", "60"))
        )
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.providers)

    async def enhance(self, image: Image, operation: str, params: dict[str, Any] | None = None) -> Image:
        if operation not in REMOTE_OPERATIONS:
            raise ValueError(f"Unsupported remote operation: {operation}")
        if not self.providers:
            raise RemoteUnavailable("No remote enhancement providers configured")

        try:
            payload = pixel_buffer.encode(image, "png")
        except EncodeError as exc:
            raise RemoteUnavailable(f"Could not build request payload: {exc}") from exc

        last_error: Exception | None = None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for provider in self.providers:
                for token in provider.tokens or [None]:
                    label = f"{provider.name}{' + token' if token else ''}"
                    logger.info("Remote %s via %s", operation, label)
                    try:
                        result = await self._call(client, provider, token, payload, operation, params or {})
                        logger.info("Remote %s succeeded via %s", operation, label)
                        return result
                    except (httpx.HTTPError, RemoteProviderError, DecodeError) as exc:
                        logger.warning("Provider %s failed: %s", label, exc)
                        last_error = exc
                        continue

        logger.error("All remote providers failed for %s", operation)
        raise RemoteUnavailable(
            f"All remote providers failed. Last error: {last_error or 'Unknown'}"
        )

    async def _call(
        self,
        client: httpx.AsyncClient,
        provider: RemoteProvider,
        token: str | None,
        payload: bytes,
        operation: str,
        params: dict[str, Any],
    ) -> Image:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        response = await client.post(
            provider.url,
            headers=headers,
            files={"image": ("image.png", payload, "image/png")},
            data={"operation": operation, "params": json.dumps(params)},
        )
        if response.status_code >= 400:
            raise RemoteProviderError(f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type.startswith("image/"):
            return pixel_buffer.decode(response.content, content_type)

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteProviderError("Response is neither an image nor JSON") from exc
        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise RemoteProviderError(error or "Provider reported failure")
        encoded = body.get("image")
        if not encoded:
            raise RemoteProviderError("No output image returned")
        if isinstance(encoded, str) and encoded.startswith("data:"):
            encoded = encoded.split(",", 1)[-1]
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise RemoteProviderError("Could not parse output image") from exc
        return pixel_buffer.decode(data, body.get("mime_type", "image/png"))
