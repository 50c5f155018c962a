import asyncio
import logging
from typing import Dict, Optional

import urllib3
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .config import FetchConfig
from .types import FetchRequest, RawResponse


logger = logging.getLogger(__name__)


def parse_endpoint(endpoint: str) -> Optional[str]:
    """Return the normalized absolute URL for ``endpoint``, or None if it isn't one."""
    if not endpoint or any(ch.isspace() for ch in endpoint):
        return None
    try:
        parsed = parse_url(endpoint)
    except LocationParseError:
        return None
    if not parsed.scheme or not parsed.host:
        return None
    return parsed.url


class UrllibTransport:
    def __init__(self, config: FetchConfig | None = None, http: urllib3.PoolManager | None = None):
        self.config = config or FetchConfig()
        self.timeout = urllib3.Timeout(connect=self.config.connect_timeout, read=self.config.request_timeout)
        self.headers: Dict[str, str] = {
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        }
        # Follow redirects, never retry failures.
        self.retries = urllib3.Retry(
            total=None,
            connect=0,
            read=0,
            status=0,
            other=0,
            redirect=max(0, self.config.max_redirects),
            raise_on_redirect=False,
        )
        self.http = http or urllib3.PoolManager(
            num_pools=max(1, self.config.num_pools),
            maxsize=max(1, self.config.max_connections),
            retries=self.retries,
        )

    def _request(self, request: FetchRequest) -> RawResponse:
        # Passing headers to urllib3 replaces the pool's, so defaults are merged here.
        headers: Dict[str, str] = {**self.headers, **request.headers}
        if request.body is not None and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
        response = self.http.request(
            request.method.value,
            request.url,
            body=request.body,
            headers=headers,
            timeout=self.timeout,
            preload_content=True,
            redirect=True,
            retries=self.retries,
        )
        logger.debug("%s %s -> %s", request.method.value, request.url, response.status)
        return RawResponse(status=response.status, headers=dict(response.headers), body=response.data)

    async def execute(self, request: FetchRequest) -> RawResponse:
        # urllib3 blocks, so the request runs on a worker thread.
        return await asyncio.to_thread(self._request, request)

    def close(self) -> None:
        self.http.clear()
