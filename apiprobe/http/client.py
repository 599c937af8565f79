"""Outbound request execution for probes."""

import time
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from apiprobe.auth import AuthContext, Authenticator
from apiprobe.config import AuthConfig, ProbeRequest, ProbeResponse
from apiprobe.scheduler import CancellationToken, RequestGovernor
from apiprobe.utils import logger, sanitize_url

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "apiprobe/0.1"
DEFAULT_BODY_LIMIT = 65536

RETRYABLE_ERRORS = (httpx.NetworkError, httpx.TimeoutException)


class HttpProbeClient:
    """Issues single probe requests and records what happened.

    HTTP error statuses are ordinary results. Transport failures (DNS,
    refused connections, timeouts, malformed URLs) come back as a
    ProbeResponse with ``transport_error`` set and no status code.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        governor: Optional[RequestGovernor] = None,
        cancellation: Optional[CancellationToken] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retries: int = 0,
        user_agent: str = DEFAULT_USER_AGENT,
        body_limit: int = DEFAULT_BODY_LIMIT,
    ):
        self.timeout = timeout
        self.governor = governor or RequestGovernor()
        self.cancellation = cancellation
        self.retries = max(0, retries)
        self.user_agent = user_agent
        self.body_limit = body_limit
        self.authenticator = Authenticator()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.request_count = 0

    async def __aenter__(self) -> "HttpProbeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def auth_context(self, auth: Optional[AuthConfig]) -> AuthContext:
        return self.authenticator.authenticate(auth)

    def _check_cancelled(self) -> None:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()

    def build_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        auth: Optional[AuthConfig] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> ProbeRequest:
        """Resolve final headers and query parameters, credentials included."""
        context = self.auth_context(auth)

        final_headers = {"User-Agent": self.user_agent}
        if isinstance(body, (dict, list)):
            final_headers["Content-Type"] = "application/json"
        final_headers.update(context.headers)
        if context.cookies:
            final_headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in context.cookies.items())
        final_headers.update(headers or {})

        final_params = dict(params or {})
        final_params.update(context.params)

        return ProbeRequest(
            url=url,
            method=method.upper(),
            headers=final_headers,
            params=final_params,
            body=body,
        )

    async def execute(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
        auth: Optional[AuthConfig] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> ProbeResponse:
        """Send one request. Never raises for HTTP or transport failures.

        Raises ScanCancelled if the scan was cancelled before the request
        was sent or while it was in flight.
        """
        request = self.build_request(url, method, headers, body, auth, params)
        return await self.send(request, timeout=timeout)

    async def send(self, request: ProbeRequest, timeout: Optional[float] = None) -> ProbeResponse:
        self._check_cancelled()

        kwargs: Dict[str, Any] = {
            "headers": request.headers,
            "timeout": timeout if timeout is not None else self.timeout,
        }
        if request.params:
            kwargs["params"] = request.params
        if request.body is not None:
            if isinstance(request.body, (dict, list)):
                kwargs["json"] = request.body
            else:
                kwargs["content"] = str(request.body)

        start = time.perf_counter()
        async with self.governor.slot():
            self._check_cancelled()
            try:
                response = await self._request_with_retry(request.method, request.url, kwargs)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug(
                    f"Transport error on {request.method} {sanitize_url(request.url)}: "
                    f"{type(e).__name__}: {e}"
                )
                self._check_cancelled()
                return ProbeResponse(
                    request=request,
                    elapsed_ms=elapsed,
                    transport_error=True,
                    error=f"{type(e).__name__}: {e}",
                )
            finally:
                self.request_count += 1

        elapsed = (time.perf_counter() - start) * 1000
        # In-flight results of a cancelled scan are discarded
        self._check_cancelled()

        return ProbeResponse(
            request=request,
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.text[: self.body_limit],
            elapsed_ms=elapsed,
        )

    async def _request_with_retry(self, method: str, url: str, kwargs: Dict[str, Any]) -> httpx.Response:
        client = self._get_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                response = await client.request(method, url, **kwargs)
        return response
