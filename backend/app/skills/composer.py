"""PromptComposer: builds a system prompt from skills plus live context.

Template variables look like {{PAGE_CONTEXT}}. Known ones are substituted;
anything left over renders as "[not available]" so the prompt never shows a
raw placeholder.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping

from app.models.task import PageSnapshot
from app.skills.loader import SkillRepository

NOT_AVAILABLE = "[not available]"
SKILL_SEPARATOR = "\n\n---\n\n"

_PLACEHOLDER = re.compile(r"\{\{[A-Z_]+\}\}")


def inject_context(content: str, context: Mapping[str, str | None]) -> str:
    for key, value in context.items():
        if value is not None:
            content = content.replace("{{" + key + "}}", value)
    return _PLACEHOLDER.sub(NOT_AVAILABLE, content)


class PromptComposer:
    def __init__(self, skills: SkillRepository) -> None:
        self.skills = skills

    def compose(self, skill_names: list[str], context: Mapping[str, str | None] | None = None) -> str:
        """Join the named skills, in order, with context injected."""
        context = context or {}
        return SKILL_SEPARATOR.join(inject_context(content, context) for content in self.skills.load_many(skill_names))

    def build_system_prompt(
        self,
        skill_names: list[str],
        page_snapshot: PageSnapshot | None = None,
        workspace_id: str | None = None,
    ) -> str:
        context: dict[str, str] = {}
        if page_snapshot is not None:
            context["PAGE_CONTEXT"] = json.dumps(page_snapshot.model_dump(mode="json", exclude_none=True), indent=2)
        if workspace_id:
            context["WORKSPACE_ID"] = workspace_id
        return self.compose(skill_names, context)
