"""
Local OAuth callback server (from openai/codex CLI)
"""
import asyncio
import errno
import logging
import socket
import sys
from typing import Optional

from aiohttp import web

from .constants import (
    OAUTH_CALLBACK_HOST,
    OAUTH_CALLBACK_PORT,
    OAUTH_CALLBACK_PATH,
    OAUTH_CALLBACK_TIMEOUT,
)
from .errors import AuthErrorKind, PortInUseError, error_message
from .models import CallbackResult

logger = logging.getLogger(__name__)


SUCCESS_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Authentication Successful</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 80px;">
    <h1>Authentication Successful!</h1>
    <p>You can now close this window and return to the terminal.</p>
    <script>
        setTimeout(function() {
            window.close();
        }, 2000);
    </script>
</body>
</html>
"""

FAILURE_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Authentication Failed</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 80px;">
    <h1>Authentication Failed</h1>
    <p>{message}</p>
    <p>You can close this window and try again from the terminal.</p>
</body>
</html>
"""


def _bind_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            # Allows rebinding over TIME_WAIT; an active listener still conflicts
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(16)
        sock.setblocking(False)
    except OSError as e:
        sock.close()
        if e.errno == errno.EADDRINUSE or getattr(e, "winerror", None) == 10048:
            raise PortInUseError(
                f"{error_message(AuthErrorKind.PORT_IN_USE)} (port {port})"
            ) from e
        raise
    return sock


class OAuthCallbackServer:
    """Local HTTP server for the OAuth redirect

    One server is one login attempt: the first request on the callback path
    settles it (code, CSRF rejection, missing code or provider error) and the
    listening socket is closed afterwards. ``failure`` explains a ``None``
    outcome.
    """

    def __init__(
        self,
        expected_state: str,
        host: str = OAUTH_CALLBACK_HOST,
        port: int = OAUTH_CALLBACK_PORT,
        callback_path: str = OAUTH_CALLBACK_PATH,
    ):
        self.expected_state = expected_state
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.failure: Optional[AuthErrorKind] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._outcome: Optional[asyncio.Future] = None
        self._closed = False

        self.app.router.add_get(callback_path, self._handle_callback)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _settle(self, result: Optional[CallbackResult], failure: Optional[AuthErrorKind] = None) -> None:
        if self._outcome is None or self._outcome.done():
            return
        self.failure = failure
        self._outcome.set_result(result)

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth callback request"""
        if self._outcome is None or self._outcome.done():
            return web.Response(text="This login attempt has already completed.", status=410)

        code = request.query.get("code")
        state = request.query.get("state")
        error = request.query.get("error")

        if error:
            logger.warning(f"OAuth provider returned error: {error}")
            self._settle(None, AuthErrorKind.CANCELLED)
            return self._failure_page(AuthErrorKind.CANCELLED)

        # Validate state (CSRF protection)
        if state != self.expected_state:
            logger.warning("OAuth callback rejected: state mismatch")
            self._settle(None, AuthErrorKind.STATE_MISMATCH)
            return self._failure_page(AuthErrorKind.STATE_MISMATCH)

        if not code:
            logger.warning("OAuth callback rejected: missing authorization code")
            self._settle(None, AuthErrorKind.MISSING_CODE)
            return self._failure_page(AuthErrorKind.MISSING_CODE)

        logger.debug(f"Received authorization code (length: {len(code)})")
        self._settle(CallbackResult(code=code))
        return web.Response(text=SUCCESS_HTML, content_type="text/html")

    @staticmethod
    def _failure_page(kind: AuthErrorKind) -> web.Response:
        return web.Response(
            text=FAILURE_HTML.format(message=error_message(kind)),
            content_type="text/html",
            status=400,
        )

    async def start(self) -> None:
        """Start the callback server

        Raises:
            PortInUseError: the callback port is already bound
        """
        sock = _bind_socket(self.host, self.port)
        self.port = sock.getsockname()[1]
        self._outcome = asyncio.get_running_loop().create_future()

        self.runner = web.AppRunner(self.app, access_log=None)
        try:
            await self.runner.setup()
            site = web.SockSite(self.runner, sock)
            await site.start()
        except BaseException:
            sock.close()
            await self.runner.cleanup()
            self.runner = None
            raise

        logger.info(f"OAuth callback server listening on {self.host}:{self.port}")

    async def wait_for_code(self, timeout: float = OAUTH_CALLBACK_TIMEOUT) -> Optional[CallbackResult]:
        """
        Wait for the OAuth callback.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            CallbackResult if successful, None on rejection, timeout or close
        """
        if self._outcome is None:
            raise RuntimeError("Callback server has not been started")

        try:
            result = await asyncio.wait_for(asyncio.shield(self._outcome), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"OAuth callback timeout after {timeout} seconds")
            self._settle(None, AuthErrorKind.TIMEOUT)
            result = None
        finally:
            await self.close()

        return result

    async def close(self) -> None:
        """Stop the callback server; releases any pending wait_for_code with None"""
        if self._closed:
            return
        self._closed = True
        self._settle(None, AuthErrorKind.CANCELLED)

        if self.runner:
            runner, self.runner = self.runner, None
            await runner.cleanup()
            logger.debug("OAuth callback server stopped")


async def start_callback_server(
    expected_state: str,
    host: str = OAUTH_CALLBACK_HOST,
    port: int = OAUTH_CALLBACK_PORT,
) -> OAuthCallbackServer:
    """
    Start OAuth callback server.

    Args:
        expected_state: Expected state parameter for CSRF protection
        host: Loopback address to bind
        port: Port to bind (0 picks a free port)

    Returns:
        OAuthCallbackServer instance

    Raises:
        PortInUseError: the port is already bound
    """
    server = OAuthCallbackServer(expected_state, host=host, port=port)
    await server.start()
    return server
