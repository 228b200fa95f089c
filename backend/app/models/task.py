"""One-off task models: single structured runs outside any session."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

TaskType = Literal[
    "analyze",
    "rename_titles",
    "suggest_theme",
    "optimize_links",
    "generate_bio",
]


class PageProfile(BaseModel):
    username: str
    display_name: str | None = None
    bio: str | None = None


class PageBlock(BaseModel):
    id: str
    type: str
    title: str
    url: str | None = None
    position: int
    is_active: bool | None = None


class PageSnapshot(BaseModel):
    """Live page state injected into the system prompt as PAGE_CONTEXT."""

    profile: PageProfile | None = None
    blocks: list[PageBlock] = Field(default_factory=list)


class OneOffTask(BaseModel):
    page_data: PageSnapshot | None = None
    task_type: TaskType
    skill_name: str = "linktree-editor"
    max_turns: int = Field(default=5, ge=1, le=10)
