"""vidchat transport layer.

The chat session reaches the hosted API only through the ChatTransport
interface; HttpChatTransport is the httpx-backed implementation.
"""

from vidchat.client.base import (
    ChatTransport,
    validate_content,
    validate_limit,
    validate_title,
)
from vidchat.client.http_transport import HttpChatTransport

__all__ = [
    "ChatTransport",
    "HttpChatTransport",
    "validate_content",
    "validate_limit",
    "validate_title",
]
