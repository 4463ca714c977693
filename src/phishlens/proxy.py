"""
Reverse proxy in front of the analysis service.

Lets the browser console call the backend same-origin: any method, path and
body under the prefix is forwarded verbatim, minus hop-by-hop headers.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from aiohttp import web


logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed or rewritten on each hop
REQUEST_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
# httpx hands back a decoded body, so the upstream content-encoding no longer applies
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}

BODYLESS_METHODS = {"GET", "HEAD"}


def build_target_url(base_url: str, path: str, query_string: str = "") -> str:
    """Join base, path and raw query string into the upstream URL."""
    target = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    if query_string:
        target += f"?{query_string}"
    return target


def strip_prefix(path: str, prefix: str) -> str:
    """Remove the mount prefix from a request path, if present."""
    prefix = prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        return path[len(prefix):]
    return path


def forwardable_headers(headers, skip: set[str]) -> list[tuple[str, str]]:
    """Header pairs with the skipped names removed, duplicates preserved."""
    return [(key, value) for key, value in headers if key and key.lower() not in skip]


class ProxyServer:
    """aiohttp server that forwards every request to the analysis service."""

    def __init__(
        self,
        base_url: Optional[str],
        *,
        host: str = "127.0.0.1",
        port: int = 8787,
        prefix: str = "/api/proxy",
        timeout: int = 30000,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.host = host
        self.port = port
        self.prefix = prefix
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

        self._app = web.Application()
        self._app.router.add_route("*", "/{path:.*}", self._forward)

    @property
    def app(self) -> web.Application:
        return self._app

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout / 1000)
        return self._client

    async def start(self) -> None:
        if self._runner:
            return
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host=self.host, port=int(self.port))
        await self._site.start()
        logger.info("Proxy listening on %s:%s -> %s", self.host, self.port, self.base_url)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _forward(self, request: web.Request) -> web.Response:
        if not self.base_url:
            return web.json_response(
                {"message": "Upstream analysis service not configured."}, status=500
            )

        path = strip_prefix(request.path, self.prefix)
        target = build_target_url(self.base_url, path, request.query_string)
        method = request.method.upper()

        headers = forwardable_headers(request.headers.items(), REQUEST_SKIP_HEADERS)
        body = None
        if method not in BODYLESS_METHODS and request.can_read_body:
            body = await request.read()

        logger.debug("Proxy %s %s", method, target)
        try:
            upstream = await self._get_client().request(
                method, target, headers=headers, content=body
            )
        except httpx.HTTPError as e:
            logger.error("Proxy request failed: %s", e)
            return web.json_response(
                {"message": "Upstream analysis service unreachable."}, status=502
            )

        return web.Response(
            status=upstream.status_code,
            headers=forwardable_headers(upstream.headers.multi_items(), RESPONSE_SKIP_HEADERS),
            body=upstream.content,
        )
