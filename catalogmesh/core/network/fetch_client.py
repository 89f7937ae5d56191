"""
HTTP Fetch Client for peer calls.

Outbound GET/POST with a bounded timeout and no automatic retry. Expected
peer unavailability (timeouts, refused connections, HTTP errors, bodies that
are not JSON) is returned as a failed FetchResult, never raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from catalogmesh.core.exceptions import sanitize_message
from catalogmesh.core.logging import get_logger
from catalogmesh.core.models.peer_error import PeerErrorType, PeerFailure

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 5.0
DEFAULT_CONNECT_TIMEOUT_SEC = 2.0
JSON_CONTENT_TYPES = ("application/json", "application/ld+json", "+json")


@dataclass
class FetchResult:
    """Success (status + parsed body) or failure (PeerFailure)."""

    url: str
    status_code: Optional[int] = None
    body: Any = None
    failure: Optional[PeerFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def recorded_status(self) -> int:
        """Status to store on the contacted peer."""
        if self.failure is not None:
            return self.failure.recorded_status
        return self.status_code or 200

    @classmethod
    def fail(
        cls,
        url: str,
        error_type: PeerErrorType,
        message: str,
        status_code: Optional[int] = None,
    ) -> "FetchResult":
        return cls(
            url=url,
            status_code=status_code,
            failure=PeerFailure(
                url=url,
                error_type=error_type,
                status_code=status_code,
                message=sanitize_message(message),
            ),
        )


def is_json_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    return any(marker in content_type for marker in JSON_CONTENT_TYPES)


class FetchClient:
    """
    Thin async HTTP client used by every federation engine.

    A new httpx.AsyncClient is opened per call so engines can fan out
    without sharing connection state.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SEC,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        assert timeout > 0, "timeout must be positive"
        assert connect_timeout > 0, "connect_timeout must be positive"
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.headers = dict(headers or {})

    @classmethod
    def from_config(cls, federation_config: Any) -> "FetchClient":
        return cls(
            timeout=federation_config.timeout_seconds,
            connect_timeout=federation_config.connect_timeout_seconds,
            headers=federation_config.headers,
        )

    def _total(self, timeout: Optional[float]) -> float:
        return timeout if timeout else self.timeout

    def _timeout(
        self, timeout: Optional[float], connect_timeout: Optional[float]
    ) -> httpx.Timeout:
        total = self._total(timeout)
        connect = connect_timeout if connect_timeout else self.connect_timeout
        return httpx.Timeout(total, connect=min(connect, total))

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = {"Accept": "application/json"}
        merged.update(self.headers)
        if extra:
            merged.update(extra)
        return merged

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
    ) -> httpx.Response | FetchResult:
        """
        Perform one request; transport failures come back as FetchResult.

        httpx timeouts apply per connect/read/write phase, so the whole
        exchange (body included) is also bounded by ``asyncio.wait_for``.
        """
        total = self._total(timeout)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout(timeout, connect_timeout)
            ) as client:
                return await asyncio.wait_for(
                    client.request(
                        method,
                        url,
                        json=json_body,
                        params=params,
                        headers=self._headers(headers),
                    ),
                    timeout=total,
                )
        except httpx.TimeoutException as e:
            logger.debug("Peer call timed out", method=method, url=url)
            return FetchResult.fail(url, PeerErrorType.TIMEOUT, f"Peer timed out: {e}")
        except asyncio.TimeoutError:
            logger.debug("Peer call exceeded total timeout", method=method, url=url)
            return FetchResult.fail(
                url, PeerErrorType.TIMEOUT, f"Peer did not answer within {total:g}s"
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Peer call failed", method=method, url=url, error=str(e))
            return FetchResult.fail(
                url, PeerErrorType.CONNECTION_ERROR, f"Connection failed: {e}"
            )

    def _to_result(self, url: str, response: httpx.Response) -> FetchResult:
        if not response.is_success:
            return FetchResult.fail(
                url,
                PeerErrorType.HTTP_ERROR,
                f"Peer returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            return FetchResult.fail(
                url,
                PeerErrorType.MALFORMED_BODY,
                "Response body is not valid JSON",
                status_code=response.status_code,
            )
        return FetchResult(url=url, status_code=response.status_code, body=body)

    async def get(
        self,
        url: str,
        *,
        params: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
    ) -> FetchResult:
        """GET ``url`` and parse its JSON body."""
        response = await self._send(
            "GET",
            url,
            params=params,
            headers=headers,
            timeout=timeout,
            connect_timeout=connect_timeout,
        )
        if isinstance(response, FetchResult):
            return response
        return self._to_result(url, response)

    async def get_json(
        self, url: str, fallback_path: Optional[str] = None
    ) -> FetchResult:
        """
        GET a directory URL.

        When the first response is successful but not JSON (a peer's
        homepage rather than its API), the request is repeated once at
        ``url + fallback_path``.
        """
        response = await self._send("GET", url)
        if isinstance(response, FetchResult):
            return response

        if response.is_success and fallback_path and not is_json_response(response):
            fallback_url = url.rstrip("/") + "/" + fallback_path.lstrip("/")
            logger.debug("Non-JSON directory response, retrying", url=fallback_url)
            retry = await self._send("GET", fallback_url)
            if isinstance(retry, FetchResult):
                return retry
            return self._to_result(url, retry)

        return self._to_result(url, response)

    async def post(
        self,
        url: str,
        json_body: Any,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> FetchResult:
        """POST a JSON body; any 2xx is success, the body is optional."""
        response = await self._send("POST", url, json_body=json_body, headers=headers)
        if isinstance(response, FetchResult):
            return response
        if not response.is_success:
            return FetchResult.fail(
                url,
                PeerErrorType.HTTP_ERROR,
                f"Peer returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        body: Any = None
        if response.content and is_json_response(response):
            try:
                body = response.json()
            except ValueError:
                body = None
        return FetchResult(url=url, status_code=response.status_code, body=body)
