"""
Certification schemas
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel
from datetime import date, datetime

from ..models.certification import VerificationStatus


class CertificationUpdate(BaseModel):
    title: Optional[str] = None
    issuer: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    credential_id: Optional[str] = None
    credential_url: Optional[str] = None
    description: Optional[str] = None


class CertificationSummary(BaseModel):
    id: int
    title: str
    issuer: str
    issue_date: date
    verification_status: VerificationStatus

    class Config:
        from_attributes = True


class CertificationResponse(CertificationSummary):
    user_id: int
    expiry_date: Optional[date] = None
    credential_id: Optional[str] = None
    credential_url: Optional[str] = None
    description: Optional[str] = None

    certificate_file: Optional[str] = None
    certificate_filename: Optional[str] = None
    certificate_content_type: Optional[str] = None

    analysis: Optional[Dict[str, Any]] = None
    authenticity: Optional[Dict[str, Any]] = None
    analysis_error: Optional[str] = None
    analyzed_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
