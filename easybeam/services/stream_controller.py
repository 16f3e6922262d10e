"""
Stream controller: owns at most one live push subscription.

States are IDLE and STREAMING. Transitions happen only through start/cancel
(caller actions) and the three transport events (data, error, closed). Every
stream gets its own _ActiveStream record, so events arriving for a stream that
was already torn down or replaced are dropped instead of leaking into the
callbacks of the current one.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from pydantic import ValidationError

from easybeam.core.generations import ApiGeneration
from easybeam.schemas.chat import ChatMessage, ChatRequest, ChatResponse, FilledVariables, UserSecrets
from easybeam.transport.base import (
    MalformedEvent,
    PushSubscription,
    StreamErrorEvent,
    Transport,
    TransportError,
)

logger = logging.getLogger(__name__)

OnNewResponse = Callable[[ChatResponse], None]
OnClose = Callable[[], None]
OnError = Callable[[Exception], None]


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


@dataclass
class _ActiveStream:
    on_new_response: OnNewResponse
    on_close: OnClose
    on_error: OnError
    subscription: Optional[PushSubscription] = None
    terminated: bool = False


def parse_chat_response(raw: str) -> ChatResponse:
    try:
        return ChatResponse.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedEvent(f"Malformed stream event: {e.error_count()} validation error(s): {e}", raw=raw) from e


class StreamController:
    def __init__(self, transport: Transport, *, base_url: str, token: str, generation: ApiGeneration) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._generation = generation
        self._active: Optional[_ActiveStream] = None

    @property
    def state(self) -> StreamState:
        return StreamState.STREAMING if self._active is not None else StreamState.IDLE

    @property
    def generation(self) -> ApiGeneration:
        return self._generation

    def _build_request(
        self,
        kind: str,
        target_id: str,
        user_id: Optional[str],
        filled_variables: FilledVariables,
        messages: Sequence[ChatMessage],
        user_secrets: Optional[UserSecrets],
        stream: bool,
    ) -> Tuple[str, Dict[str, Any]]:
        kind = self._generation.check_kind(kind)
        if user_secrets is not None and not self._generation.accepts_secrets:
            raise ValueError(f"user secrets are not accepted by the {self._generation.name} API")
        req = ChatRequest(
            variables=dict(filled_variables),
            messages=list(messages),
            stream="true" if stream else "false",
            user_id=user_id,
            user_secrets=user_secrets,
        )
        url = f"{self._base_url}/{kind}/{target_id}"
        return url, req.to_payload()

    async def start_stream(
        self,
        kind: str,
        target_id: str,
        user_id: Optional[str],
        filled_variables: FilledVariables,
        messages: Sequence[ChatMessage],
        on_new_response: OnNewResponse,
        on_close: OnClose,
        on_error: OnError,
        user_secrets: Optional[UserSecrets] = None,
    ) -> None:
        """
        Opens the push subscription and returns as soon as it is requested.
        A stream that is still live is cancelled first, silently.
        """
        url, payload = self._build_request(kind, target_id, user_id, filled_variables, messages, user_secrets, True)
        if self._active is not None:
            logger.info("replacing live stream with a new one")
            self.cancel_current_stream()

        stream = _ActiveStream(on_new_response=on_new_response, on_close=on_close, on_error=on_error)
        self._active = stream
        logger.info("starting stream: %s %s -> %s", kind, target_id, url)
        try:
            stream.subscription = self._transport.open_push_subscription(
                url,
                "POST",
                payload,
                self._token,
                on_data=lambda raw: self._handle_data(stream, raw),
                on_error=lambda event: self._handle_error(stream, event),
                on_closed=lambda: self._handle_closed(stream),
            )
        except Exception:
            stream.terminated = True
            self._active = None
            raise

    def cancel_current_stream(self) -> None:
        stream = self._active
        if stream is None:
            return
        logger.info("cancelling current stream")
        # silent: the caller asked for it, so neither on_close nor on_error fires
        self._release(stream)

    async def wait_closed(self) -> None:
        stream = self._active
        if stream is not None and stream.subscription is not None:
            await stream.subscription.wait_closed()

    async def get_response(
        self,
        kind: str,
        target_id: str,
        user_id: Optional[str],
        filled_variables: FilledVariables,
        messages: Sequence[ChatMessage],
        user_secrets: Optional[UserSecrets] = None,
    ) -> ChatResponse:
        url, payload = self._build_request(kind, target_id, user_id, filled_variables, messages, user_secrets, False)
        data = await self._transport.send_request(url, "POST", payload, self._token)
        try:
            return ChatResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedEvent(f"Malformed response from {url}: {e}") from e

    # --- transport event handlers ---

    def _release(self, stream: _ActiveStream) -> None:
        # idempotent; the subscription is closed at most once per stream
        if stream.terminated:
            return
        stream.terminated = True
        if stream.subscription is not None:
            stream.subscription.close()
        if self._active is stream:
            self._active = None
        logger.debug("stream released")

    def _notify_error(self, stream: _ActiveStream, error: Exception) -> None:
        # a failing caller callback must not stop the stream from reaching a terminal state
        try:
            stream.on_error(error)
        except Exception as e:
            logger.exception("on_error callback failed: %s", e)

    def _notify_close(self, stream: _ActiveStream) -> None:
        try:
            stream.on_close()
        except Exception as e:
            logger.exception("on_close callback failed: %s", e)

    def _handle_data(self, stream: _ActiveStream, raw: Optional[str]) -> None:
        if stream.terminated:
            return
        if not raw:
            logger.warning("Received message event with empty data")
            return
        try:
            response = parse_chat_response(raw)
        except MalformedEvent as e:
            logger.warning("%s", e)
            self._notify_error(stream, e)
            return

        try:
            stream.on_new_response(response)
        except Exception as e:
            logger.exception("on_new_response callback failed: %s", e)
            self._notify_error(stream, e)

        if response.stream_finished and not stream.terminated:
            self._release(stream)
            self._notify_close(stream)

    def _handle_error(self, stream: _ActiveStream, event: StreamErrorEvent) -> None:
        if stream.terminated:
            return
        error = TransportError(event)
        logger.error("%s", error)
        self._notify_error(stream, error)
        self._release(stream)
        self._notify_close(stream)

    def _handle_closed(self, stream: _ActiveStream) -> None:
        if stream.terminated:
            return
        # the transport already closed the connection; only bookkeeping is left
        stream.terminated = True
        if self._active is stream:
            self._active = None
        self._notify_close(stream)
