from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from .skill import UserSkillResponse
from .certification import CertificationResponse, CertificationSummary

# bcrypt only hashes the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def check_password_length(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)


class UserCreate(UserBase):
    password: str = Field(min_length=6)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value):
        return check_password_length(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    bio: Optional[str] = None
    public_profile: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=6)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value):
        return check_password_length(value) if value is not None else value


class AuthResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    profile_url: str
    token: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    bio: Optional[str] = None
    profile_url: str
    public_profile: bool = False
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    """User with skills and certifications"""
    skills: List[UserSkillResponse] = Field(default_factory=list, validation_alias="skill_links")
    certifications: List[CertificationResponse] = Field(default_factory=list)


class PublicProfileResponse(BaseModel):
    id: int
    name: str
    bio: Optional[str] = None
    profile_url: str
    profile_image: Optional[str] = None
    skills: List[UserSkillResponse] = Field(default_factory=list, validation_alias="skill_links")
    certifications: List[CertificationSummary] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileSearchResult(BaseModel):
    id: int
    name: str
    email: EmailStr
    profile_url: str
    skills: List[UserSkillResponse] = Field(default_factory=list, validation_alias="skill_links")
    certifications: List[CertificationSummary] = Field(default_factory=list)

    class Config:
        from_attributes = True
