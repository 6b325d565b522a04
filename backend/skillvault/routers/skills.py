"""
Skills Router - shared skill catalog and the current user's skills
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload

from ..database import get_db
from ..models import User, Skill, UserSkill, SkillLevel
from ..schemas.skill import SkillCreate, SkillUpdate, SkillResponse, UserSkillResponse
from ..services.auth import get_current_user
from .profiles import like_pattern

router = APIRouter(prefix="/api/skills", tags=["Skills"])


# ============================================================================
# Helper Functions
# ============================================================================

async def find_skill_by_name(db: AsyncSession, name: str) -> Optional[Skill]:
    result = await db.execute(
        select(Skill).where(func.lower(Skill.name) == name.strip().lower())
    )
    return result.scalar_one_or_none()


async def get_user_skill(db: AsyncSession, user_id: int, skill_id: int) -> Optional[UserSkill]:
    result = await db.execute(
        select(UserSkill)
        .options(selectinload(UserSkill.skill))
        .where(UserSkill.user_id == user_id, UserSkill.skill_id == skill_id)
    )
    return result.scalar_one_or_none()


async def get_owned_skill(db: AsyncSession, skill_id: int, user: User) -> UserSkill:
    """The user's link to a skill; 404 if the skill is missing, 401 if not held."""
    skill = await db.get(Skill, skill_id)
    if not skill:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Skill not found"
        )

    link = await get_user_skill(db, user.id, skill_id)
    if not link:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized"
        )
    return link


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/", response_model=List[UserSkillResponse])
async def get_skills(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(UserSkill)
        .join(UserSkill.skill)
        .options(selectinload(UserSkill.skill))
        .where(UserSkill.user_id == current_user.id)
        .order_by(Skill.name)
    )
    return result.scalars().all()


@router.get("/catalog", response_model=List[SkillResponse])
async def list_catalog(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All shared skills, for autocomplete."""
    query = select(Skill)

    if search:
        query = query.where(Skill.name.ilike(like_pattern(search.strip()), escape="\\"))

    query = query.order_by(Skill.name).limit(50)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{skill_id}", response_model=UserSkillResponse)
async def get_skill(
    skill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await get_owned_skill(db, skill_id, current_user)


@router.post("/", response_model=UserSkillResponse, status_code=status.HTTP_201_CREATED)
async def create_skill(
    skill_data: SkillCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Add a skill to the current user.

    Skills are shared: if one with the same name already exists the user is
    attached to it, otherwise a new skill is created.
    """
    name = (skill_data.name or "").strip()
    category = (skill_data.category or "").strip()
    if not name or not category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide name and category"
        )

    skill = await find_skill_by_name(db, name)
    link = None

    if skill:
        link = await get_user_skill(db, current_user.id, skill.id)
        if link and skill_data.level:
            link.level = skill_data.level
    else:
        skill = Skill(name=name, category=category, description=skill_data.description)
        db.add(skill)
        await db.flush()

    if not link:
        link = UserSkill(
            user_id=current_user.id,
            skill=skill,
            level=skill_data.level or SkillLevel.BEGINNER
        )
        db.add(link)

    await db.commit()
    return link


@router.put("/{skill_id}", response_model=UserSkillResponse)
async def update_skill(
    skill_id: int,
    skill_data: SkillUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update the shared skill fields and/or the user's proficiency level."""
    link = await get_owned_skill(db, skill_id, current_user)
    skill = link.skill
    update_dict = skill_data.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in update_dict:
        name = update_dict["name"].strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Skill name cannot be empty"
            )
        existing = await find_skill_by_name(db, name)
        if existing and existing.id != skill.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A skill with that name already exists"
            )
        skill.name = name

    if "category" in update_dict:
        category = update_dict["category"].strip()
        if not category:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Skill category cannot be empty"
            )
        skill.category = category

    if "description" in update_dict:
        skill.description = update_dict["description"]
    if "level" in update_dict:
        link.level = update_dict["level"]

    await db.commit()
    return link


@router.delete("/{skill_id}")
async def delete_skill(
    skill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Detach the skill from the user; the skill goes away with its last holder."""
    link = await get_owned_skill(db, skill_id, current_user)
    skill = link.skill

    await db.delete(link)
    await db.flush()

    result = await db.execute(
        select(func.count()).select_from(UserSkill).where(UserSkill.skill_id == skill_id)
    )
    if result.scalar_one() == 0:
        await db.delete(skill)

    await db.commit()
    return {"message": "Skill removed"}
