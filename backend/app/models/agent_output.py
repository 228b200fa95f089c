"""Structured agent responses: what the editor agent is asked to return.

AgentResponse is a discriminated union on "type":
  - mutation: block changes to apply to the page
  - analysis: insights about the page
  - message:  plain conversational reply
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, HttpUrl

BlockType = Literal[
    "CLASSIC",
    "GROUP",
    "HEADER",
    "SPOTIFY_PLAYLIST",
    "SPOTIFY_TRACK",
    "SPOTIFY_ALBUM",
    "SOCIAL",
    "EMBED",
]


class BlockMutation(BaseModel):
    id: str | None = None
    type: BlockType | None = None
    title: str
    url: HttpUrl | None = None
    position: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    parent_id: str | None = None


class BlockMutationSet(BaseModel):
    action: Literal["create", "update", "delete", "reorder", "noop"]
    blocks: list[BlockMutation]
    explanation: str
    preview: str | None = None
    requires_confirmation: bool = False


class Insight(BaseModel):
    type: Literal["warning", "suggestion", "info"]
    message: str
    block_id: str | None = None


class Analysis(BaseModel):
    insights: list[Insight]
    score: float | None = Field(default=None, ge=0, le=100)
    summary: str


class ReplyContent(BaseModel):
    content: str


class MutationResponse(BaseModel):
    type: Literal["mutation"]
    data: BlockMutationSet


class AnalysisResponse(BaseModel):
    type: Literal["analysis"]
    data: Analysis


class MessageResponse(BaseModel):
    type: Literal["message"]
    data: ReplyContent


AgentResponse = Annotated[
    Union[MutationResponse, AnalysisResponse, MessageResponse],
    Field(discriminator="type"),
]
