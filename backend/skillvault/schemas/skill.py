from typing import Optional
from pydantic import BaseModel

from ..models.skill import SkillLevel


class SkillCreate(BaseModel):
    # name/category are checked in the router so the API answers 400, not 422
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    level: Optional[SkillLevel] = None


class SkillUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    level: Optional[SkillLevel] = None


class SkillResponse(BaseModel):
    id: int
    name: str
    category: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class UserSkillResponse(SkillResponse):
    level: SkillLevel = SkillLevel.BEGINNER
