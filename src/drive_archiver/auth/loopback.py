"""
One-shot loopback listener for capturing the OAuth redirect.
"""

import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

from ..exceptions import MalformedRedirectRequestError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"

SUCCESS_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: text/html\r\n"
    b"Connection: close\r\n"
    b"\r\n"
    b"<html><body><h2>Authentication successful!</h2>"
    b"<p>You can close this tab.</p></body></html>"
)


def parse_redirect_request(request_line: str) -> Dict[str, str]:
    """
    Extract query parameters from an HTTP request line.

    Args:
        request_line: e.g. ``GET /?code=abc&state=xyz HTTP/1.1``

    Returns:
        Mapping of parameter name to its first value

    Raises:
        MalformedRedirectRequestError: If the line has no request target
    """
    parts = request_line.split()
    if len(parts) < 2:
        raise MalformedRedirectRequestError("Malformed HTTP request from browser")

    query = urlsplit(parts[1]).query
    params = parse_qs(query, keep_blank_values=True)
    return {name: values[0] for name, values in params.items()}


class RedirectListener:
    """
    Loopback HTTP endpoint that accepts exactly one redirect.

    Use as an async context manager; the socket is released on every exit
    path::

        async with RedirectListener() as listener:
            url = build_url(listener.redirect_uri)
            params = await listener.wait_for_redirect()
    """

    def __init__(self, host: str = LOOPBACK_HOST):
        self.host = host
        self._server: Optional[asyncio.AbstractServer] = None
        self._result: Optional[asyncio.Future] = None
        self._accepted = False

    async def __aenter__(self) -> "RedirectListener":
        self._result = asyncio.get_running_loop().create_future()
        self._server = await asyncio.start_server(self._handle_connection, self.host, 0)
        logger.debug(f"Redirect listener bound on {self.redirect_uri}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def port(self) -> int:
        if self._server is None:
            raise RuntimeError("Redirect listener is not bound")
        return self._server.sockets[0].getsockname()[1]

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def wait_for_redirect(self, timeout: Optional[float] = None) -> Dict[str, str]:
        """
        Wait for the browser redirect and return its query parameters.

        Raises:
            MalformedRedirectRequestError: If the request cannot be parsed
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        if self._result is None:
            raise RuntimeError("Redirect listener is not bound")
        return await asyncio.wait_for(self._result, timeout)

    async def close(self) -> None:
        """Stop listening. Safe to call more than once."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()
            logger.debug("Redirect listener closed")

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        # Only the first connection counts; later ones (favicon, retries) are dropped
        if self._accepted:
            writer.close()
            return
        self._accepted = True

        try:
            try:
                raw_line = await reader.readline()
                # Drain headers so closing does not reset the browser connection
                while (await reader.readline()).strip():
                    pass
                writer.write(SUCCESS_RESPONSE)
                await writer.drain()
            finally:
                writer.close()
            params = parse_redirect_request(raw_line.decode("latin-1"))
        except MalformedRedirectRequestError as e:
            self._resolve(exception=e)
            return
        except (OSError, ValueError) as e:
            self._resolve(exception=MalformedRedirectRequestError(
                f"Failed to read redirect request: {type(e).__name__}"
            ))
            return

        self._resolve(result=params)

    def _resolve(self, result=None, exception: Optional[Exception] = None) -> None:
        if self._result is None or self._result.done():
            return
        if exception is not None:
            self._result.set_exception(exception)
        else:
            self._result.set_result(result)
