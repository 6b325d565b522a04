from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean
from sqlalchemy.orm import relationship
from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    profile_url = Column(String(255), unique=True, index=True, nullable=False)
    public_profile = Column(Boolean, default=False, nullable=False)
    profile_image = Column(String(500), nullable=True)  # storage key
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    skill_links = relationship("UserSkill", back_populates="user", cascade="all, delete-orphan")
    certifications = relationship(
        "Certification",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Certification.created_at.desc()",
    )
