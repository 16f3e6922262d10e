"""
Public entry point.

    client = Easybeam(token="...")
    await client.stream_chat("prompt", "p1", None, {"name": "Ada"}, [ChatMessage.user("hi")],
                             on_response, on_close, on_error)

stream_chat returns once the subscription is requested; responses arrive via the callbacks.
get_chat and submit_review wait for the single request to finish.
"""
import logging
from typing import Optional, Sequence, Union

from easybeam.core import config
from easybeam.core.generations import ApiGeneration, get_generation
from easybeam.schemas.chat import ChatMessage, ChatResponse, FilledVariables, ReviewRequest, UserSecrets
from easybeam.services.stream_controller import OnClose, OnError, OnNewResponse, StreamController, StreamState
from easybeam.transport.base import Transport
from easybeam.transport.httpx_transport import HttpxTransport

logger = logging.getLogger(__name__)


class Easybeam:
    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        generation: Union[str, ApiGeneration, None] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        token = token or config.EASYBEAM_TOKEN
        if not token:
            raise ValueError("an API token is required (pass token= or set EASYBEAM_TOKEN)")
        if not isinstance(generation, ApiGeneration):
            generation = get_generation(generation)
        self._token = token
        self._base_url = (base_url or config.EASYBEAM_BASE_URL).rstrip("/")
        self._transport = transport or HttpxTransport()
        self._controller = StreamController(
            self._transport, base_url=self._base_url, token=token, generation=generation
        )

    def __repr__(self) -> str:
        return f"Easybeam(base_url={self._base_url!r}, generation={self._controller.generation.name!r})"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def stream_state(self) -> StreamState:
        return self._controller.state

    async def stream_chat(
        self,
        kind: str,
        target_id: str,
        user_id: Optional[str],
        variables: FilledVariables,
        messages: Sequence[ChatMessage],
        on_response: OnNewResponse,
        on_close: OnClose,
        on_error: OnError,
        secrets: Optional[UserSecrets] = None,
    ) -> None:
        await self._controller.start_stream(
            kind, target_id, user_id, variables, messages, on_response, on_close, on_error, user_secrets=secrets
        )

    async def get_chat(
        self,
        kind: str,
        target_id: str,
        user_id: Optional[str],
        variables: FilledVariables,
        messages: Sequence[ChatMessage],
        secrets: Optional[UserSecrets] = None,
    ) -> ChatResponse:
        return await self._controller.get_response(kind, target_id, user_id, variables, messages, user_secrets=secrets)

    async def submit_review(
        self,
        chat_id: str,
        user_id: Optional[str] = None,
        score: Optional[Union[int, float]] = None,
        text: Optional[str] = None,
    ) -> None:
        review = ReviewRequest(chat_id=chat_id, user_id=user_id, review_score=score, review_text=text)
        url = f"{self._base_url}/review"
        await self._transport.send_request(url, "POST", review.to_payload(), self._token)
        logger.debug("review submitted for chat %s", chat_id)

    def cancel_stream(self) -> None:
        self._controller.cancel_current_stream()

    async def wait_for_stream(self) -> None:
        await self._controller.wait_closed()
