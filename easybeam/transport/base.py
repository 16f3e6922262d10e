# declares the transport contract the stream controller needs (one-shot request + push subscription)
# and the error types shared by the transport, the controller and the public client

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol


class EasybeamError(Exception):
    pass


class RequestFailed(EasybeamError):
    def __init__(self, method: str, url: str, status_code: Optional[int] = None, detail: Optional[str] = None) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        msg = f"Failed to process {method} request to {url}"
        if status_code is not None:
            msg += f" (status {status_code})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class MalformedEvent(EasybeamError):
    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        self.raw = raw
        super().__init__(message)


class StreamErrorKind(str, Enum):
    PROTOCOL = "protocol"    # server sent something that is not a usable event stream
    TIMEOUT = "timeout"
    EXCEPTION = "exception"  # connection-level failure


@dataclass(frozen=True)
class StreamErrorEvent:
    kind: StreamErrorKind
    detail: str = ""

    def describe(self) -> str:
        if self.kind is StreamErrorKind.TIMEOUT:
            return "Timeout occurred"
        return self.detail or "Unknown error"


class TransportError(EasybeamError):
    def __init__(self, event: StreamErrorEvent) -> None:
        self.kind = event.kind
        super().__init__(f"SSE error: {event.describe()}")


DataHandler = Callable[[str], None]
ErrorHandler = Callable[[StreamErrorEvent], None]
ClosedHandler = Callable[[], None]


class PushSubscription(Protocol):
    def close(self) -> None:
        """Idempotent. No handler fires once this returns."""

    async def wait_closed(self) -> None: ...


class Transport(Protocol):
    async def send_request(self, url: str, method: str, payload: Optional[Dict[str, Any]], token: str) -> Any: ...

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
    ) -> PushSubscription: ...


def build_headers(token: str, *, stream: bool = False) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {token}",
    }
    if stream:
        headers["Accept"] = "text/event-stream"
    return headers
