import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from easybeam.core import config
from easybeam.transport.base import (
    ClosedHandler,
    DataHandler,
    ErrorHandler,
    MalformedEvent,
    RequestFailed,
    StreamErrorEvent,
    StreamErrorKind,
    build_headers,
)

logger = logging.getLogger(__name__)


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Frames server-sent events out of a line iterator and yields each event's data.
    data: lines accumulate, a blank line dispatches; other fields and comments are ignored.
    """
    buf: List[str] = []
    seen_data = False
    async for line in lines:
        if line == "":
            if seen_data:
                yield "\n".join(buf)
            buf = []
            seen_data = False
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            buf.append(value)
            seen_data = True
    # an event without its terminating blank line is dropped


class HttpxSubscription:
    def __init__(
        self,
        url: str,
        method: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        timeout: httpx.Timeout,
        on_data: DataHandler,
        on_error: ErrorHandler,
        on_closed: ClosedHandler,
    ) -> None:
        self._url = url
        self._method = method
        self._payload = payload
        self._headers = headers
        self._timeout = timeout
        self._on_data = on_data
        self._on_error = on_error
        self._on_closed = on_closed
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task = self._task
        # a handler closing its own subscription just stops the read loop
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    def _emit_error(self, event: StreamErrorEvent) -> None:
        if self._closed:
            return
        # no closed event follows an error; the subscriber owns teardown from here
        self._closed = True
        self._on_error(event)

    async def _run(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream(self._method, self._url, json=self._payload, headers=self._headers) as r:
                    if r.is_error:
                        self._emit_error(StreamErrorEvent(StreamErrorKind.PROTOCOL, f"HTTP {r.status_code} from {self._url}"))
                        return
                    async for data in iter_sse_data(r.aiter_lines()):
                        if self._closed:
                            return
                        self._on_data(data)
                        if self._closed:
                            return
        except httpx.TimeoutException as e:
            self._emit_error(StreamErrorEvent(StreamErrorKind.TIMEOUT, str(e)))
            return
        except httpx.HTTPError as e:
            self._emit_error(StreamErrorEvent(StreamErrorKind.EXCEPTION, str(e) or type(e).__name__))
            return
        except Exception as e:
            logger.exception("push subscription handler failed: %s", e)
            self._emit_error(StreamErrorEvent(StreamErrorKind.EXCEPTION, str(e) or type(e).__name__))
            return
        if not self._closed:
            self._closed = True
            self._on_closed()


class HttpxTransport:
    def __init__(
        self,
        *,
        connect_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
        stream_read_timeout: Optional[float] = None,
    ) -> None:
        connect = config.CONNECT_TIMEOUT if connect_timeout is None else connect_timeout
        self._request_timeout = httpx.Timeout(
            config.REQUEST_TIMEOUT if request_timeout is None else request_timeout, connect=connect
        )
        self._stream_timeout = httpx.Timeout(
            config.STREAM_READ_TIMEOUT if stream_read_timeout is None else stream_read_timeout, connect=connect
        )

    async def send_request(self, url: str, method: str, payload: Optional[Dict[str, Any]], token: str) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._request_timeout) as client:
                r = await client.request(method, url, json=payload, headers=build_headers(token))
        except httpx.HTTPError as e:
            raise RequestFailed(method, url, detail=str(e)) from e
        if r.is_error:
            raise RequestFailed(method, url, status_code=r.status_code)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise MalformedEvent(f"Invalid JSON body from {method} {url}: {e}", raw=r.text) from e

    def open_push_subscription(
        self,
        url: str,
        method: str,
        payload: Dict[str, Any],
        token: str,
        *,
        on_data: DataHandler,
        on_error: ErrorHandler,
        on_closed: ClosedHandler,
    ) -> HttpxSubscription:
        sub = HttpxSubscription(
            url,
            method,
            payload,
            build_headers(token, stream=True),
            self._stream_timeout,
            on_data,
            on_error,
            on_closed,
        )
        sub.start()
        logger.debug("push subscription opened: %s %s", method, url)
        return sub
