"""
Certification model - user-owned credentials with optional uploaded file and AI analysis
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class Certification(Base):
    __tablename__ = "certifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(300), nullable=False)
    issuer = Column(String(200), nullable=False)
    issue_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=True)
    credential_id = Column(String(200), nullable=True)
    credential_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    # Uploaded file
    certificate_file = Column(String(500), nullable=True)  # storage key
    certificate_filename = Column(String(255), nullable=True)
    certificate_content_type = Column(String(100), nullable=True)

    # AI analysis
    verification_status = Column(
        SQLEnum(VerificationStatus),
        default=VerificationStatus.PENDING,
        nullable=False
    )
    analysis = Column(JSON, nullable=True)
    authenticity = Column(JSON, nullable=True)
    analysis_error = Column(Text, nullable=True)
    analyzed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="certifications")
