"""Skills API: list the markdown skills prompts are composed from."""

from __future__ import annotations

from app.api.deps import get_skills
from app.skills.loader import SkillNotFoundError, SkillRepository
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

router = APIRouter(prefix="/api/skills", tags=["skills"])


class SkillSummary(BaseModel):
    name: str
    title: str
    description: str


class SkillContent(BaseModel):
    name: str
    content: str


@router.get("", response_model=list[SkillSummary])
async def list_skills(skills: SkillRepository = Depends(get_skills)) -> list[SkillSummary]:
    return [SkillSummary(name=m.name, title=m.title, description=m.description) for m in skills.list()]


@router.get("/{name}", response_model=SkillContent)
async def get_skill(name: str, skills: SkillRepository = Depends(get_skills)) -> SkillContent:
    try:
        return SkillContent(name=name, content=skills.load(name))
    except SkillNotFoundError:
        raise HTTPException(status_code=404, detail=f"Skill '{name}' not found.")
