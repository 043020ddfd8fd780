"""httpx implementation of the ChatTransport interface.

Talks to ``/api/chat/conversations/{id}/messages``: POST with
``stream: true`` returns an SSE body, POST with ``stream: false`` returns
the stored message pair as JSON, GET lists the conversation history.

``/api/chat/conversations`` lists (GET) and creates (POST) an
organization's conversations; ``/api/chat/conversations/{id}`` renames
(PATCH) and deletes (DELETE) one.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from vidchat.client.base import (
    ChatTransport,
    validate_content,
    validate_limit,
    validate_title,
)
from vidchat.errors import TransportError
from vidchat.schemas.config import ClientConfig
from vidchat.schemas.conversations import Conversation, ConversationList
from vidchat.schemas.messages import MessageList, SendMessageResponse

logger = logging.getLogger(__name__)


def _short_error_reason(error: Exception | int) -> str:
    """Map an httpx error or HTTP status to a short, log-friendly reason."""
    if isinstance(error, int):
        status = error
    elif isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
    else:
        status = 0

    if status == 401 or status == 403:
        return "not authorized"
    if status == 404:
        return "conversation not found"
    if status == 429:
        return "rate limit"
    if status == 503:
        return "service unavailable"
    if status >= 500:
        return "server error"
    if status >= 400:
        return f"bad request ({status})"

    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    if isinstance(error, httpx.ConnectError):
        return "connection error"
    if isinstance(error, httpx.RemoteProtocolError):
        return "connection dropped"
    # Fallback: first 80 chars of the error
    return str(error)[:80]


_CONVERSATIONS_PATH = "/api/chat/conversations"


def _conversation_path(conversation_id: str) -> str:
    return f"{_CONVERSATIONS_PATH}/{quote(conversation_id, safe='')}"


def _messages_path(conversation_id: str) -> str:
    return f"{_conversation_path(conversation_id)}/messages"


class HttpChatTransport(ChatTransport):
    """ChatTransport over an ``httpx.AsyncClient``.

    The API token is read from the environment variable named by
    ``config.token_env`` unless passed explicitly. An existing client can
    be injected (tests use ``httpx.MockTransport``); an injected client is
    not closed by aclose().
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config)
        self._token = token if token is not None else os.environ.get(config.token_env, "")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
        )

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        headers = {"Accept": accept}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @asynccontextmanager
    async def stream_message(
        self, conversation_id: str, content: str
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        validate_content(content)
        try:
            async with self._client.stream(
                "POST",
                _messages_path(conversation_id),
                json={"content": content, "stream": True},
                headers=self._headers(accept="text/event-stream"),
            ) as response:
                if response.is_error:
                    await response.aread()
                    logger.warning(
                        "Streaming send to %s failed (%s)",
                        conversation_id, _short_error_reason(response.status_code),
                    )
                    raise TransportError(
                        "Failed to send message", status_code=response.status_code
                    )
                yield self._iter_body(response)
        except httpx.HTTPError as e:
            logger.warning(
                "Streaming send to %s failed (%s)", conversation_id, _short_error_reason(e)
            )
            raise TransportError(f"Failed to send message: {_short_error_reason(e)}") from e

    async def _iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.warning("Reply stream read failed (%s)", _short_error_reason(e))
            raise TransportError(f"Reply stream interrupted: {_short_error_reason(e)}") from e

    async def send_message(self, conversation_id: str, content: str) -> SendMessageResponse:
        validate_content(content)
        response = await self._request(
            "POST",
            _messages_path(conversation_id),
            json={"content": content, "stream": False},
        )
        try:
            return SendMessageResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError("Unexpected response body from send") from e

    async def list_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> MessageList:
        limit = limit or self._config.history_limit
        validate_limit(limit)
        response = await self._request(
            "GET", _messages_path(conversation_id), params={"limit": limit}
        )
        try:
            return MessageList.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError("Unexpected response body from message list") from e

    async def list_conversations(self, organization_id: str) -> list[Conversation]:
        response = await self._request(
            "GET", _CONVERSATIONS_PATH, params={"organizationId": organization_id}
        )
        try:
            return ConversationList.model_validate(response.json()).conversations
        except (ValueError, ValidationError) as e:
            raise TransportError("Unexpected response body from conversation list") from e

    async def create_conversation(self, organization_id: str) -> Conversation:
        response = await self._request(
            "POST", _CONVERSATIONS_PATH, json={"organizationId": organization_id}
        )
        try:
            conversation = Conversation.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError("Unexpected response body from conversation create") from e
        logger.debug("Created conversation %s", conversation.id)
        return conversation

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        title = validate_title(title)
        response = await self._request(
            "PATCH", _conversation_path(conversation_id), json={"title": title}
        )
        try:
            return Conversation.model_validate(response.json())
        except (ValueError, ValidationError):
            # A 2xx without the updated record still means the rename landed
            logger.debug("Rename of %s returned no conversation record", conversation_id)
            return Conversation(id=conversation_id, title=title)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", _conversation_path(conversation_id))
        logger.debug("Deleted conversation %s", conversation_id)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("%s %s failed (%s)", method, url, _short_error_reason(e))
            raise TransportError(
                f"Request failed: {_short_error_reason(e)}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed (%s)", method, url, _short_error_reason(e))
            raise TransportError(f"Request failed: {_short_error_reason(e)}") from e
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
