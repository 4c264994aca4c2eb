"""
llmbridge HTTP Transport - Thin httpx wrapper shared by all provider clients

- post_json(): JSON request/response with error mapping and cancellation
- stream_bytes(): POST and yield raw body chunks of a streaming response
- get_json(): simple GET (model listing)

HTTP status errors and httpx exceptions are mapped onto llmbridge.errors.
No retries are attempted here.
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..cancellation import CancellationToken, run_cancellable
from ..errors import ResponseFormatError, map_status_error, map_transport_exception

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Async HTTP transport for one provider.

    Example:
        transport = HttpTransport("https://api.openai.com/v1", headers={"Authorization": "Bearer sk-xxx"})
        body = await transport.post_json("/chat/completions", {...})
        async for chunk in transport.stream_bytes("/chat/completions", {..., "stream": True}):
            ...
        await transport.close()
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60,
        stream_timeout: Optional[float] = None,
        provider: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Provider API base URL
            headers: Headers sent with every request
            timeout: Request timeout in seconds
            stream_timeout: Read timeout for streaming responses
            provider: Provider id for error context
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.provider = provider
        self.timeout = timeout
        self.stream_timeout = stream_timeout or timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def post_json(
        self,
        path: str,
        body: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST a JSON body and decode the JSON response.

        Raises:
            CancelledError: Token cancelled before or during the request
            TransportError: Connection failure or HTTP error status
            ResponseFormatError: Response body is not JSON
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(self.provider)

        try:
            response = await run_cancellable(
                self._client.post(path, json=body, params=params),
                cancel_token,
                self.provider,
            )
        except httpx.HTTPError as e:
            raise map_transport_exception(e, self.provider) from e

        return self._decode(response)

    async def get_json(
        self,
        path: str,
        cancel_token: Optional[CancellationToken] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(self.provider)

        try:
            response = await run_cancellable(
                self._client.get(path, params=params),
                cancel_token,
                self.provider,
            )
        except httpx.HTTPError as e:
            raise map_transport_exception(e, self.provider) from e

        return self._decode(response)

    async def stream_bytes(
        self,
        path: str,
        body: Dict[str, Any],
        params: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[bytes]:
        """
        POST a JSON body and yield raw chunks of the streaming response.

        Cancellation is applied by the consumer (translate_stream), which
        closes this generator and with it the HTTP connection.

        Raises:
            TransportError: Connection failure or HTTP error status
        """
        timeout = httpx.Timeout(self.timeout, read=self.stream_timeout, connect=10.0)
        try:
            async with self._client.stream(
                "POST", path, json=body, params=params, timeout=timeout
            ) as response:
                if response.status_code >= 400:
                    content = await response.aread()
                    logger.warning(f"{self.provider} stream request failed with HTTP {response.status_code}")
                    raise map_status_error(
                        response.status_code, content, self.provider, response.headers
                    )

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            raise map_transport_exception(e, self.provider) from e

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            logger.warning(f"{self.provider} request failed with HTTP {response.status_code}")
            raise map_status_error(
                response.status_code, response.content, self.provider, response.headers
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Response is not valid JSON: {e}",
                raw_text=response.text,
                provider=self.provider,
            ) from e
        if not isinstance(data, dict):
            raise ResponseFormatError(
                "Response is not a JSON object",
                raw_text=response.text,
                provider=self.provider,
            )
        return data

    async def close(self) -> None:
        await self._client.aclose()
