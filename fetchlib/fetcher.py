import asyncio
import logging
import time
from typing import Any, Callable, Generator, Generic, Mapping, Optional, Tuple, TypeVar

from .config import FetchConfig
from .decoder import decode, encode_body
from .errors import (
    InvalidDataError,
    InvalidHttpResponseError,
    InvalidResponseError,
    InvalidURLError,
    RequestCancelledError,
    error_kind,
)
from .metrics import Metrics
from .net import UrllibTransport, parse_endpoint
from .result import FetchResult
from .types import FetchRequest, HttpMethod, RawResponse, TransportProtocol


logger = logging.getLogger(__name__)

T = TypeVar("T")

Headers = Optional[Mapping[str, str]]
HandleCallback = Callable[["asyncio.Task[RawResponse]"], None]


class Fetcher:
    """Issues one HTTP request per call and wraps the outcome in a :class:`FetchResult`.

    Every verb coroutine is total: failures come back in ``result.error`` instead of
    being raised. The only exception that escapes is ``CancelledError`` when the
    calling task itself is cancelled.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        transport: TransportProtocol | None = None,
        metrics: Metrics | None = None,
    ):
        self.config = config or FetchConfig()
        self._transport: TransportProtocol = transport or UrllibTransport(self.config)
        self.metrics = metrics or Metrics()
        # Most recently issued transport call, targeted by cancel_after().
        self._current: Optional["asyncio.Task[RawResponse]"] = None

    @property
    def transport(self) -> TransportProtocol:
        return self._transport

    def set_transport(self, transport: TransportProtocol) -> None:
        self._transport = transport

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if callable(close):
            close()

    async def get(self, endpoint: str, headers: Headers = None, *, into: Any = Any) -> FetchResult:
        return await self.request(HttpMethod.GET, endpoint, None, headers, into=into)

    async def post(self, endpoint: str, body: Any = None, headers: Headers = None, *, into: Any = Any) -> FetchResult:
        return await self.request(HttpMethod.POST, endpoint, body, headers, into=into)

    async def put(self, endpoint: str, body: Any = None, headers: Headers = None, *, into: Any = Any) -> FetchResult:
        return await self.request(HttpMethod.PUT, endpoint, body, headers, into=into)

    async def delete(self, endpoint: str, headers: Headers = None, *, into: Any = Any) -> FetchResult:
        return await self.request(HttpMethod.DELETE, endpoint, None, headers, into=into)

    async def patch(self, endpoint: str, body: Any = None, headers: Headers = None, *, into: Any = Any) -> FetchResult:
        return await self.request(HttpMethod.PATCH, endpoint, body, headers, into=into)

    async def request(
        self,
        method: HttpMethod | str,
        endpoint: str,
        body: Any = None,
        headers: Headers = None,
        *,
        into: Any = Any,
    ) -> FetchResult:
        return await self._fetch(HttpMethod(method.upper()), endpoint, body, headers, into)

    def submit(
        self,
        method: HttpMethod | str,
        endpoint: str,
        body: Any = None,
        headers: Headers = None,
        *,
        into: Any = Any,
    ) -> "FetchHandle":
        """Start a call as its own task and return a handle that can cancel just that call.

        Must be called from inside a running event loop; outside one it raises
        ``RuntimeError``.
        """
        return FetchHandle(self, HttpMethod(method.upper()), endpoint, body, headers, into)

    def cancel_after(self, delay: float = 0.0, before_cancel: Optional[Callable[[], None]] = None) -> asyncio.TimerHandle:
        """Cancel the most recently issued request after ``delay`` seconds.

        ``before_cancel`` runs first. The target is looked up when the timer fires, so
        a request issued in the meantime is the one cancelled. Must be called from
        inside a running event loop.
        """
        loop = asyncio.get_running_loop()

        def fire() -> None:
            try:
                if before_cancel is not None:
                    before_cancel()
            finally:
                current = self._current
                if current is not None and not current.done():
                    logger.debug("Cancelling most recent request")
                    current.cancel()

        return loop.call_later(max(0.0, delay), fire)

    def _build_request(self, url: str, method: HttpMethod, body: Any, headers: Headers) -> FetchRequest:
        merged = dict(self.config.default_headers)
        if headers:
            merged.update(headers)
        return FetchRequest(url=url, method=method, body=encode_body(body), headers=merged)

    async def _execute(self, request: FetchRequest, on_handle: Optional[HandleCallback]) -> RawResponse:
        handle = asyncio.ensure_future(self._transport.execute(request))
        self._current = handle
        if on_handle is not None:
            on_handle(handle)
        try:
            return await handle
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise RequestCancelledError() from None
        finally:
            if self._current is handle:
                self._current = None

    async def _classify(
        self,
        method: HttpMethod,
        endpoint: str,
        body: Any,
        headers: Headers,
        into: Any,
        on_handle: Optional[HandleCallback],
    ) -> Tuple[FetchResult, int]:
        url = parse_endpoint(endpoint)
        if url is None:
            return FetchResult(None, None, InvalidURLError()), 0
        status: Optional[int] = None
        size = 0
        try:
            request = self._build_request(url, method, body, headers)
            raw = await self._execute(request, on_handle)
            if not raw.is_http:
                raise InvalidHttpResponseError()
            status = raw.status
            if raw.body is None:
                raise InvalidDataError()
            size = len(raw.body)
            if raw.status != 200:
                raise InvalidResponseError(raw.status)
            return FetchResult(raw.status, decode(raw.body, into), None), size
        except InvalidResponseError as exc:
            return FetchResult(exc.status_code, None, exc), size
        except InvalidDataError as exc:
            kept = status if self.config.keep_status_on_data_error else None
            return FetchResult(kept, None, exc), size
        except Exception as exc:
            return FetchResult(None, None, exc), size

    async def _fetch(
        self,
        method: HttpMethod,
        endpoint: str,
        body: Any,
        headers: Headers,
        into: Any,
        on_handle: Optional[HandleCallback] = None,
    ) -> FetchResult:
        t0 = time.perf_counter()
        result, size = await self._classify(method, endpoint, body, headers, into, on_handle)
        dt_ms = (time.perf_counter() - t0) * 1000.0
        if result.error is None:
            self.metrics.record_fetch(True, size, dt_ms)
            logger.debug("%s %s ok (%d) in %.1f ms", method.value, endpoint, result.status_code, dt_ms)
        else:
            kind = error_kind(result.error)
            self.metrics.record_fetch(False, size, dt_ms, error_kind=kind)
            logger.info("%s %s failed: %s (%s)", method.value, endpoint, kind, result.error)
        return result


class FetchHandle(Generic[T]):
    """A single in-flight call started by :meth:`Fetcher.submit`.

    Awaiting the handle yields the call's :class:`FetchResult`. Cancelling it
    affects this call only; the result then carries a :class:`RequestCancelledError`.
    """

    def __init__(self, fetcher: Fetcher, method: HttpMethod, endpoint: str, body: Any, headers: Headers, into: Any):
        self._transport_handle: Optional["asyncio.Task[RawResponse]"] = None
        self._cancel_requested = False
        loop = asyncio.get_running_loop()
        self._task: "asyncio.Task[FetchResult]" = loop.create_task(
            fetcher._fetch(method, endpoint, body, headers, into, on_handle=self._bind)
        )

    def _bind(self, handle: "asyncio.Task[RawResponse]") -> None:
        self._transport_handle = handle
        if self._cancel_requested:
            handle.cancel()

    def cancel(self) -> None:
        self._cancel_requested = True
        handle = self._transport_handle
        if handle is not None and not handle.done():
            handle.cancel()

    def cancel_after(self, delay: float, before_cancel: Optional[Callable[[], None]] = None) -> asyncio.TimerHandle:
        def fire() -> None:
            try:
                if before_cancel is not None:
                    before_cancel()
            finally:
                self.cancel()

        return asyncio.get_running_loop().call_later(max(0.0, delay), fire)

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> FetchResult:
        return await self._task

    def __await__(self) -> Generator[Any, None, FetchResult]:
        return self._task.__await__()
