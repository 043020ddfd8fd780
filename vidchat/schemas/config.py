"""Client configuration schema."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClientConfig(BaseModel):
    """Settings for talking to the hosted chat API.

    Loaded from the ``[client]`` table of defaults.toml, with a handful of
    environment overrides applied by the config loader.
    """

    base_url: str = Field(
        default="http://localhost:3000", description="Root URL of the chat API"
    )
    timeout: float = Field(
        default=120.0, gt=0, description="Read timeout in seconds for a streamed reply"
    )
    connect_timeout: float = Field(
        default=10.0, gt=0, description="Connect timeout in seconds"
    )
    max_frame_chars: int = Field(
        default=1_048_576,
        gt=0,
        description="Upper bound on text retained while waiting for a frame to parse",
    )
    history_limit: int = Field(
        default=100, ge=1, le=200, description="Default page size when listing messages"
    )
    token_env: str = Field(
        default="VIDCHAT_API_TOKEN", description="Environment variable holding the API token"
    )
    organization_id: str | None = Field(
        default=None,
        description="Organization whose conversations are listed and created",
    )
