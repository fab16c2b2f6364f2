"""
asc-bridge — single-shot static artifact server.

Purpose
- Answer HTTP requests from an ``ArtifactMap`` with permissive cross-origin headers.

Functional requirements
- ``/`` is an alias for ``/index.html``; leading separators are stripped before lookup.
- Hits return 200, the stored bytes, and an extension-derived content type
  (``; charset=utf-8`` appended for ``text/`` types).
- Misses return 404 with an empty body.
- No caching headers, directory listing, or range handling.
"""

from __future__ import annotations

import mimetypes
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING, Final

import structlog
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

from asc_bridge.constants import LOOPBACK_HOST
from asc_bridge.harness.artifacts import ArtifactMap, normalize_served_path
from asc_bridge.harness.errors import ProvisionError

if TYPE_CHECKING:
    from _typeshed.wsgi import StartResponse, WSGIEnvironment
    from werkzeug.serving import BaseWSGIServer

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
CORS_HEADERS: Final[tuple[tuple[str, str], ...]] = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "*"),
)

mimetypes.add_type("application/wasm", ".wasm")

logger = structlog.get_logger(__name__)


def content_type_for(path: str) -> str:
    guessed, _encoding = mimetypes.guess_type(path, strict=False)
    content_type = guessed or DEFAULT_CONTENT_TYPE
    if "text/" in content_type:
        content_type += "; charset=utf-8"
    return content_type


class ArtifactServer:
    """WSGI application over one read-only artifact map."""

    def __init__(self, artifacts: ArtifactMap) -> None:
        self.artifacts = artifacts

    def respond(self, request_path: str) -> Response:
        path = normalize_served_path(request_path)
        artifact = self.artifacts.get(path)
        if artifact is None:
            return Response(b"", status=404)

        response = Response(artifact.content, status=200, content_type=content_type_for(path))
        for name, value in CORS_HEADERS:
            response.headers[name] = value
        return response

    def __call__(
        self, environ: WSGIEnvironment, start_response: StartResponse
    ) -> Iterable[bytes]:
        request = Request(environ)
        return self.respond(request.path)(environ, start_response)

    def start(self, host: str = LOOPBACK_HOST) -> RunningArtifactServer:
        """Bind an ephemeral port and serve on a daemon thread; ready on return."""

        try:
            server = make_server(host, 0, self, threaded=True)
        except OSError as exc:
            raise ProvisionError(f"artifact server failed to bind {host}: {exc}") from exc

        thread = threading.Thread(
            target=server.serve_forever,
            name="asc-artifact-server",
            daemon=True,
        )
        thread.start()
        running = RunningArtifactServer(server=server, thread=thread, host=host)
        logger.info("artifact_server_started", url=running.url, artifacts=len(self.artifacts))
        return running


class RunningArtifactServer:
    """Handle for a listening artifact server; the port is owned until ``close``."""

    def __init__(self, *, server: BaseWSGIServer, thread: threading.Thread, host: str) -> None:
        self._server = server
        self._thread = thread
        self.host = host
        self.port = int(server.server_port)
        self._closed = False

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5.0)
        logger.info("artifact_server_stopped", url=self.url)


__all__ = [
    "ArtifactServer",
    "CORS_HEADERS",
    "DEFAULT_CONTENT_TYPE",
    "RunningArtifactServer",
    "content_type_for",
]
