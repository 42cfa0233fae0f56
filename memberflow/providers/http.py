"""httpx-backed implementation of the generic HTTP client."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from .base import HttpResponse


class HttpxClient:
    """Issue webhook requests with :class:`httpx.AsyncClient`.

    Network failures surface as :class:`httpx.RequestError`; non-2xx answers
    are returned, not raised.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.default_headers = default_headers or {}
        self._transport = transport

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> HttpResponse:
        merged_headers = {**self.default_headers, **(headers or {})}
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method=method.upper(),
                url=url,
                headers=merged_headers,
                json=json,
            )
        return HttpResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            body=_decode_body(response),
        )


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except json.JSONDecodeError:
        return response.text
