"""
Users Router - registration, login and profile management
"""
import re
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..database import get_db
from ..models import User, UserSkill
from ..schemas.user import (
    UserCreate, UserLogin, UserUpdate,
    AuthResponse, UserResponse, ProfileResponse, PublicProfileResponse
)
from ..services.auth import (
    authenticate_user,
    create_access_token,
    get_password_hash,
    get_current_user
)
from ..services.storage import StorageBackend, StorageError, InvalidUpload, get_storage, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])
settings = get_settings()


# ============================================================================
# Helper Functions
# ============================================================================

async def get_user_with_relations(db: AsyncSession, *conditions) -> Optional[User]:
    """Get a user with skills and certifications loaded."""
    result = await db.execute(
        select(User)
        .options(
            selectinload(User.skill_links).selectinload(UserSkill.skill),
            selectinload(User.certifications),
        )
        .where(*conditions)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def slugify_name(name: str) -> str:
    """URL-safe slug: runs of anything outside [a-z0-9] become a single '-'."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


async def generate_profile_url(db: AsyncSession, name: str) -> str:
    """Slug of the name, suffixed -2, -3, ... when already taken."""
    base = slugify_name(name) or "user"
    candidate = base
    suffix = 2
    while True:
        result = await db.execute(select(User.id).where(User.profile_url == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        profile_url=user.profile_url,
        token=create_access_token(data={"sub": str(user.id)})
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user and return a token."""
    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists"
        )

    user = User(
        name=user_data.name.strip(),
        email=email,
        hashed_password=get_password_hash(user_data.password),
        profile_url=await generate_profile_url(db, user_data.name)
    )
    db.add(user)
    await db.commit()

    logger.info("Registered user %s (%s)", user.id, user.profile_url)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, credentials.email, credentials.password)
    if not user:
        logger.info("Failed login attempt for %s", credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _auth_response(user)


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Current user with skills and certifications."""
    user = await get_user_with_relations(db, User.id == current_user.id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    update_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    update_dict = update_data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in update_dict:
        email = update_dict["email"].lower()
        if email != current_user.email:
            result = await db.execute(select(User.id).where(User.email == email))
            if result.scalar_one_or_none() is not None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email already in use"
                )
        current_user.email = email

    if "name" in update_dict:
        current_user.name = update_dict["name"].strip()
    if "bio" in update_dict:
        current_user.bio = update_dict["bio"]
    if "public_profile" in update_dict:
        current_user.public_profile = update_dict["public_profile"]
    if "password" in update_dict:
        current_user.hashed_password = get_password_hash(update_dict["password"])

    await db.commit()
    return current_user


@router.get("/public/{profile_url}", response_model=PublicProfileResponse)
async def get_public_profile(profile_url: str, db: AsyncSession = Depends(get_db)):
    user = await get_user_with_relations(db, User.profile_url == profile_url)
    if not user or not user.public_profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found or not public"
        )
    return user


@router.post("/upload")
async def upload_profile_image(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage)
):
    """Upload or replace the profile image."""
    content = await file.read()
    try:
        validate_upload(file.content_type, len(content), settings.max_upload_size, allow_pdf=False)
    except InvalidUpload as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        key = await storage.save(content, file.filename, file.content_type, folder="profile-images")
    except StorageError as e:
        logger.error("Profile image upload failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save image. Please try again."
        )

    previous = current_user.profile_image
    current_user.profile_image = key
    await db.commit()

    if previous:
        try:
            await storage.delete(previous)
        except StorageError as e:
            logger.warning("Could not delete previous profile image %s: %s", previous, e)

    return {
        "message": "Image uploaded successfully",
        "profile_image": key,
        "url": storage.url_for(key)
    }
