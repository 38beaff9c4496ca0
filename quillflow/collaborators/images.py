"""Image generation through the Runware API."""

from __future__ import annotations

import logging
import random
import re
import time
from pathlib import Path
from typing import Optional

import httpx

from ..exceptions import CollaboratorError
from .base import GeneratedImage
from .http import HTTPCollaborator

logger = logging.getLogger(__name__)


def image_filename(prompt: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "_", prompt.lower())[:50]
    return f"{slug}_{int(time.time() * 1000)}.png"


class RunwareImageGenerator(HTTPCollaborator):
    """Generate an image and download it into ``output_dir``."""

    def __init__(
        self,
        api_key: str,
        output_dir: str | Path = ".tmp/images",
        base_url: str = "https://api.runware.ai/v1",
        width: int = 1024,
        height: int = 576,
        steps: int = 30,
        model: str = "stable-diffusion-xl",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )
        self.output_dir = Path(output_dir)
        self.width = width
        self.height = height
        self.steps = steps
        self.model = model

    async def download(self, url: str) -> bytes:
        """Fetch a generated image without the API credentials."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Image download from {url} failed: {e}")
            raise CollaboratorError(f"Image download failed: {e}") from e
        return self._handle_response(response).content

    async def generate(self, prompt: str) -> GeneratedImage:
        data = await self._post_json(
            "/image/generate",
            {
                "prompt": prompt,
                "width": self.width,
                "height": self.height,
                "steps": self.steps,
                "seed": random.randint(0, 999_999),
                "model": self.model,
            },
        )
        image_url = data.get("image_url")
        if not image_url:
            raise CollaboratorError("Runware response did not include an image_url")

        content = await self.download(image_url)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        local_path = self.output_dir / image_filename(prompt)
        local_path.write_bytes(content)
        logger.debug(f"Saved generated image to {local_path}")
        return GeneratedImage(url=image_url, local_path=str(local_path), prompt=prompt)
