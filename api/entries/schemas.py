"""
Entry API schemas (request models).

Field names on the wire are camelCase; responses are plain dicts shaped by
`normalizer.to_canonical`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EntryCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str | None = Field(default=None, max_length=500)
    content: str | None = Field(default=None, max_length=100_000)
    # Older clients send the list JSON-encoded as a string.
    media_urls: list[str] | str | None = Field(default=None, alias="mediaUrls")
    audio_url: str | None = Field(default=None, alias="audioUrl", max_length=2048)
    duration: float | str | None = None

    def payload(self) -> dict:
        return self.model_dump(exclude_unset=True, by_alias=True)


class EntryUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str | None = Field(default=None, max_length=500)
    content: str | None = Field(default=None, max_length=100_000)
    media_urls: list[str] | str | None = Field(default=None, alias="mediaUrls")
    audio_url: str | None = Field(default=None, alias="audioUrl", max_length=2048)

    def payload(self) -> dict:
        # Only what the client actually sent; absent keys stay untouched.
        return self.model_dump(exclude_unset=True, by_alias=True)
