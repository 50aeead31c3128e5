"""Logo generation collaborators.

The generator is a black box: ``generate(prompt)`` returns an image URL or
raises ExternalServiceError. Retrying a timed-out call is the remote
service's concern; callers invoke it once per paid credit.
"""

from __future__ import annotations

import logging
import secrets
from typing import Protocol
from urllib.parse import quote

import httpx

from app.config import settings
from app.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DICEBEAR_URL = "https://api.dicebear.com/9.x/shapes/svg"
DICEBEAR_BACKGROUNDS = "0a0a0a,1a1a1a,ffffff"
DICEBEAR_SHAPE_COLORS = "0a0a0a,1a1a1a,ffffff,4f46e5,06b6d4,f43f5e"


class LogoGenerator(Protocol):
    """Anything that turns a prompt into an image reference."""

    def generate(self, prompt: str) -> str: ...


class DicebearLogoGenerator:
    """Vector placeholder logos seeded from the prompt."""

    def generate(self, prompt: str) -> str:
        seed = quote(f"{prompt}{secrets.token_hex(4)}", safe="")
        return (
            f"{DICEBEAR_URL}?seed={seed}"
            f"&backgroundColor={DICEBEAR_BACKGROUNDS}"
            f"&shape1Color={DICEBEAR_SHAPE_COLORS}"
        )


class HttpLogoGenerator:
    """Client for a remote image model exposing ``POST {prompt} -> {image_url}``."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout_seconds: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not url:
            raise ValueError("GENERATOR_URL is required for the http generator")
        self.url = url
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def generate(self, prompt: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = self.client.post(self.url, json={"prompt": prompt}, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("Logo generator timed out after %s", self.client.timeout)
            raise ExternalServiceError() from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Logo generator request failed: %s", exc)
            raise ExternalServiceError() from exc

        image_url = payload.get("image_url") if isinstance(payload, dict) else None
        if not isinstance(image_url, str) or not image_url:
            logger.warning("Logo generator returned no image_url")
            raise ExternalServiceError()
        return image_url


def build_generator() -> LogoGenerator:
    """Return the generator selected by GENERATOR_BACKEND."""
    backend = settings.generator_backend.strip().lower()
    if backend == "http":
        return HttpLogoGenerator(
            url=settings.generator_url,
            api_key=settings.generator_api_key,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    if backend == "dicebear":
        return DicebearLogoGenerator()
    raise ValueError(f"Unknown generator backend: {settings.generator_backend}")
