"""Tests for SkillRepository and PromptComposer."""

from __future__ import annotations

import pytest
from app.models.task import PageBlock, PageProfile, PageSnapshot
from app.skills.composer import NOT_AVAILABLE, SKILL_SEPARATOR, PromptComposer, inject_context
from app.skills.loader import SkillNotFoundError, SkillRepository, extract_description, extract_title


@pytest.fixture
def skill_dir(tmp_path):
    (tmp_path / "alpha.md").write_text("# Alpha Skill\n\nFirst skill.\n\nPage: {{PAGE_CONTEXT}}\n")
    (tmp_path / "beta.md").write_text("No heading here. {{WORKSPACE_ID}} {{UNKNOWN_KEY}}\n")
    return tmp_path


class TestSkillRepository:
    def test_list_sorted_with_metadata(self, skill_dir) -> None:
        metas = SkillRepository(skill_dir).list()
        assert [m.name for m in metas] == ["alpha", "beta"]
        assert metas[0].title == "Alpha Skill"
        assert metas[0].description == "First skill."
        assert metas[1].title == "Unnamed Skill"

    def test_load_caches_content(self, skill_dir) -> None:
        repo = SkillRepository(skill_dir)
        first = repo.load("alpha")
        (skill_dir / "alpha.md").write_text("# Changed\n")
        assert repo.load("alpha") == first

    def test_missing_skill(self, skill_dir) -> None:
        with pytest.raises(SkillNotFoundError):
            SkillRepository(skill_dir).load("gamma")

    def test_path_traversal_rejected(self, skill_dir) -> None:
        with pytest.raises(SkillNotFoundError):
            SkillRepository(skill_dir).load("../secrets")

    def test_bundled_skills_present(self) -> None:
        names = [m.name for m in SkillRepository().list()]
        assert "linktree-editor" in names
        assert "structured-output" in names


class TestPromptComposer:
    def test_compose_in_order_with_separator(self, skill_dir) -> None:
        prompt = PromptComposer(SkillRepository(skill_dir)).compose(["beta", "alpha"], {"WORKSPACE_ID": "ws-1"})
        beta, alpha = prompt.split(SKILL_SEPARATOR)
        assert beta.startswith("No heading here. ws-1")
        assert alpha.startswith("# Alpha Skill")

    def test_unresolved_placeholders_marked(self, skill_dir) -> None:
        prompt = PromptComposer(SkillRepository(skill_dir)).compose(["alpha", "beta"])
        assert "{{" not in prompt
        assert prompt.count(NOT_AVAILABLE) == 3

    def test_build_system_prompt_page_context(self, skill_dir) -> None:
        snapshot = PageSnapshot(
            profile=PageProfile(username="maya", bio="Ceramics"),
            blocks=[PageBlock(id="b1", type="CLASSIC", title="Shop", url="https://maya.shop", position=0)],
        )
        prompt = PromptComposer(SkillRepository(skill_dir)).build_system_prompt(["alpha"], page_snapshot=snapshot)
        assert '"username": "maya"' in prompt
        assert '"title": "Shop"' in prompt
        assert "display_name" not in prompt

    def test_missing_skill_propagates(self, skill_dir) -> None:
        with pytest.raises(SkillNotFoundError):
            PromptComposer(SkillRepository(skill_dir)).compose(["alpha", "nope"])


def test_inject_context_ignores_none():
    assert inject_context("a {{X}} b", {"X": None}) == f"a {NOT_AVAILABLE} b"


def test_extractors():
    assert extract_title("intro\n# Title Here\nbody") == "Title Here"
    assert extract_description("# T\n\n## Sub\nLine one\nLine two") == "Line one"
