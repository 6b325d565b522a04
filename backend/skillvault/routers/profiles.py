"""
Profiles Router - public profile search and profile comparison
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from sqlalchemy.orm import selectinload

from ..database import get_db
from ..models import User, Skill, UserSkill, Certification, ProfileComparison
from ..schemas.user import ProfileSearchResult
from ..schemas.skill import UserSkillResponse
from ..schemas.certification import CertificationSummary
from ..schemas.comparison import CompareRequest, ComparisonResponse
from ..services.auth import get_current_user
from ..services.profile_comparison import analyze_profiles
from .users import get_user_with_relations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profiles", tags=["Profiles"])


def like_pattern(query: str) -> str:
    """Substring LIKE pattern with %, _ and \\ matched literally (use escape="\\\\")."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def serialize_profile(user: User) -> dict:
    """Plain-dict skills/certifications for the comparison service."""
    return {
        "skills": [
            UserSkillResponse.model_validate(link).model_dump(mode="json")
            for link in user.skill_links
        ],
        "certifications": [
            CertificationSummary.model_validate(cert).model_dump(mode="json")
            for cert in user.certifications
        ],
    }


async def find_comparison(db: AsyncSession, user_id_1: int, user_id_2: int):
    """Stored comparison for the pair, in either order."""
    result = await db.execute(
        select(ProfileComparison)
        .where(or_(
            and_(ProfileComparison.user1_id == user_id_1, ProfileComparison.user2_id == user_id_2),
            and_(ProfileComparison.user1_id == user_id_2, ProfileComparison.user2_id == user_id_1),
        ))
        .order_by(ProfileComparison.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.get("/search", response_model=List[ProfileSearchResult])
async def search_profiles(query: str = "", db: AsyncSession = Depends(get_db)):
    """Public profiles matching by name, skill name or certification title."""
    query = query.strip()
    if not query:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide a search query"
        )

    pattern = like_pattern(query)
    result = await db.execute(
        select(User)
        .options(
            selectinload(User.skill_links).selectinload(UserSkill.skill),
            selectinload(User.certifications),
        )
        .where(
            User.public_profile.is_(True),
            or_(
                User.name.ilike(pattern, escape="\\"),
                User.skill_links.any(UserSkill.skill.has(Skill.name.ilike(pattern, escape="\\"))),
                User.certifications.any(Certification.title.ilike(pattern, escape="\\")),
            )
        )
        .order_by(User.name)
        .limit(50)
    )
    return result.scalars().all()


@router.post("/compare", response_model=ComparisonResponse, status_code=status.HTTP_201_CREATED)
async def compare_profiles(
    request: CompareRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Compare two profiles.

    A stored comparison for the pair is returned as is (200) unless refresh is
    requested; otherwise a new one is computed and stored (201).
    """
    if request.user_id_1 == request.user_id_2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot compare a profile with itself"
        )

    user1 = await get_user_with_relations(db, User.id == request.user_id_1)
    user2 = await get_user_with_relations(db, User.id == request.user_id_2)
    if not user1 or not user2:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="One or both users not found"
        )

    for user in (user1, user2):
        if user.id != current_user.id and not user.public_profile:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Profile is not public"
            )

    comparison = await find_comparison(db, user1.id, user2.id)
    if comparison and not request.refresh:
        response.status_code = status.HTTP_200_OK
        return comparison

    analysis = analyze_profiles(serialize_profile(user1), serialize_profile(user2))

    if comparison:
        comparison.user1_id = user1.id
        comparison.user2_id = user2.id
        comparison.analysis = analysis
        response.status_code = status.HTTP_200_OK
    else:
        comparison = ProfileComparison(user1_id=user1.id, user2_id=user2.id, analysis=analysis)
        db.add(comparison)

    await db.commit()
    logger.info("Compared profiles %s and %s (comparison %s)", user1.id, user2.id, comparison.id)
    return comparison


@router.get("/comparisons/{comparison_id}", response_model=ComparisonResponse)
async def get_comparison(
    comparison_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    comparison = await db.get(ProfileComparison, comparison_id)
    if not comparison:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comparison not found"
        )

    if current_user.id not in (comparison.user1_id, comparison.user2_id):
        for user_id in (comparison.user1_id, comparison.user2_id):
            user = await db.get(User, user_id)
            if not user or not user.public_profile:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Profile is not public"
                )

    return comparison
