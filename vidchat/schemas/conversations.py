"""Conversation records returned by the chat API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Conversation(BaseModel):
    """One chat conversation belonging to an organization."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Conversation identifier")
    title: str | None = Field(default=None, description="User-facing title, if set")
    video_ids: tuple[str, ...] = Field(
        default=(), alias="videoIds", description="Videos the conversation is scoped to"
    )
    message_count: int = Field(default=0, ge=0, alias="messageCount")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("video_ids", mode="before")
    @classmethod
    def _null_video_ids(cls, value: object) -> object:
        return () if value is None else value

    @property
    def display_title(self) -> str:
        return self.title or "Untitled conversation"


class ConversationList(BaseModel):
    """Body returned when listing an organization's conversations."""

    conversations: list[Conversation] = Field(default_factory=list)
