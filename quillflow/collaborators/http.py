"""Base class for HTTP-backed collaborators."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..exceptions import CollaboratorError

logger = logging.getLogger(__name__)


class HTTPCollaborator:
    """Lazy-initialized ``httpx.AsyncClient`` wrapper.

    Transient failures are not retried here; the calling pipeline step
    owns the retry policy. Passing ``transport`` lets tests substitute an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        raise CollaboratorError(
            f"{type(self).__name__} got HTTP {response.status_code} from {response.url}",
            status_code=response.status_code,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{type(self).__name__} request to {path} failed: {e}")
            raise CollaboratorError(f"{type(self).__name__} request failed: {e}") from e
        return self._handle_response(response)

    async def _post_json(self, path: str, payload: Dict[str, Any], **kwargs: Any) -> Any:
        response = await self._request("POST", path, json=payload, **kwargs)
        return response.json()
