"""SkillRepository: markdown skill files that make up system prompts.

Each skill is one `<name>.md` file. Contents are read at most once per
process lifetime; construct one repository at startup and inject it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

BUNDLED_SKILLS_DIR = Path(__file__).parent / "library"

_SKILL_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_TITLE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


class SkillNotFoundError(Exception):
    """No skill file exists for the requested name."""


@dataclass(frozen=True)
class SkillMeta:
    name: str
    title: str
    description: str
    file_path: str


class SkillRepository:
    def __init__(self, skills_dir: str | Path | None = None) -> None:
        self.skills_dir = Path(skills_dir) if skills_dir else BUNDLED_SKILLS_DIR
        self._cache: dict[str, str] = {}

    def list(self) -> list[SkillMeta]:
        """All skills in the directory, sorted by name."""
        metas = []
        for path in sorted(self.skills_dir.glob("*.md")):
            content = self.load(path.stem)
            metas.append(SkillMeta(
                name=path.stem,
                title=extract_title(content),
                description=extract_description(content),
                file_path=str(path),
            ))
        return metas

    def load(self, name: str) -> str:
        if name in self._cache:
            return self._cache[name]
        if not _SKILL_NAME.match(name):
            raise SkillNotFoundError(f"Skill '{name}' not found")
        path = self.skills_dir / f"{name}.md"
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SkillNotFoundError(f"Skill '{name}' not found") from None
        self._cache[name] = content
        logger.debug("Skill loaded: %s (%d chars)", name, len(content))
        return content

    def load_many(self, names: list[str]) -> list[str]:
        return [self.load(name) for name in names]


def extract_title(content: str) -> str:
    match = _TITLE.search(content)
    return match.group(1).strip() if match else "Unnamed Skill"


def extract_description(content: str) -> str:
    """First non-heading line after the title."""
    in_paragraph = False
    for line in content.splitlines():
        if line.startswith("# "):
            in_paragraph = True
            continue
        if in_paragraph and line.strip() and not line.startswith("#"):
            return line.strip()
    return ""
